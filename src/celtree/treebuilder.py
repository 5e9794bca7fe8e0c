# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

import logging

from celtree.excelformula import (
    FormulaToken,
    GrammarParseError,
    NameContext,
    tokenize,
)
from celtree.excelutil import CelTreeException
from celtree.formulanode import (
    ArityMismatchError,
    Leaf,
    Operation,
    RenderMode,
)


ILLEGAL_QUOTING = "!'"

celtree_logger = logging.getLogger('celtree')


class EmptyFormulaError(CelTreeException):
    """Formula text is empty"""


class IllegalQuotingError(CelTreeException):
    """Formula has a quote directly after a sheet separator"""


class MalformedFormulaError(CelTreeException):
    """Tokens did not reduce to a single tree"""


class CyclicNameError(CelTreeException):
    """A named range refers to itself, directly or through other names"""


def check_formula_text(formula):
    """ Reject formula text the grammar is known not to handle

    :param formula: formula text, leading '=' optional
    :return: the formula text without the leading '='
    """
    if formula.startswith('='):
        formula = formula[1:]

    if not formula.strip():
        raise EmptyFormulaError("Formula is an empty string.")
    elif formula.startswith("="):
        raise GrammarParseError(f"Formula has a second leading '=': {formula}")
    elif ILLEGAL_QUOTING in formula:
        raise IllegalQuotingError(
            f"Formula contains illegal single quotes: {formula}")
    return formula


def build_tree(formula, context=None, sheet=0, origin=(0, 0),
               mode=RenderMode.GENERALIZED):
    """ Build the expression tree of a formula

    :param formula: formula text, or a sequence of `FormulaToken`
    :param context: `NameContext` for resolving named ranges
    :param sheet: index of the sheet the formula lives on
    :param origin: (row, col) of the cell holding the formula, zero based
    :param mode: `RenderMode` for the canonical text of every node
    :return: root `FormulaNode`
    """
    RenderMode.validate(mode)
    if isinstance(formula, str):
        formula = check_formula_text(formula)
        tree = _build(tokenize(formula, context, sheet),
                      context, sheet, tuple(origin), mode, ())
        tree.set_formula_length(len(formula))
        return tree

    return _build(formula, context, sheet, tuple(origin), mode, ())


def _build(tokens, context, sheet, origin, mode, expanding):
    stack = []

    for token in tokens:
        if token.is_bookkeeping:
            # structural markers, with no representation in the formula
            continue

        elif token.kind in (FormulaToken.OPERATION, FormulaToken.ATTR_SUM):
            # ATTR_SUM is the single area SUM, always one argument
            node = _operation(token, stack, mode)

        elif token.kind == FormulaToken.NAME:
            node = _expand_name(token, context, sheet, origin, mode, expanding)

        elif token.kind == FormulaToken.PAREN:
            if not stack:
                raise MalformedFormulaError('Parenthesis without an operand')
            node = stack.pop()
            node.wrap()

        else:
            node = Leaf(token, origin, mode)

        stack.append(node)

    if len(stack) != 1:
        raise MalformedFormulaError(
            f'Expected a single tree, found {len(stack)} nodes: '
            f'{" ".join(map(str, tokens))}')
    return stack[0]


def _operation(token, stack, mode):
    """Pop the arguments of an operation, first argument popped last"""
    if len(stack) < token.arity:
        raise ArityMismatchError(
            f"'{token.simple_form}' expects {token.arity} arguments, "
            f"only {len(stack)} available")

    args = stack[len(stack) - token.arity:]
    del stack[len(stack) - token.arity:]
    return Operation(token, args, mode)


def _expand_name(token, context, sheet, origin, mode, expanding):
    """Inline the tree of a named range in place of the name"""
    if context is None:
        context = NameContext()
    definition = context.definition(token.value, sheet)
    if (token.value.upper(), definition) in expanding:
        raise CyclicNameError(
            f"Name refers to itself: {' -> '.join(n for n, _ in expanding)}"
            f" -> {token.value}")

    celtree_logger.debug(f'Expanding name {token.value}: {definition}')
    return _build(context.resolve(token, sheet), context, sheet, origin,
                  mode, expanding + ((token.value.upper(), definition),))


class ExcelFormulaTree:
    """Build, on demand, the tokens and tree of one formula."""

    def __init__(self, formula, context=None, sheet=0, origin=(0, 0),
                 mode=RenderMode.GENERALIZED):
        self.base_formula = formula
        self.context = context
        self.sheet = sheet
        self.origin = tuple(origin)
        self.mode = RenderMode.validate(mode)

        self._tokens = None
        self._tree = None

    def __str__(self):
        return self.base_formula

    def __repr__(self):
        return f'ExcelFormulaTree({self.base_formula})'

    @property
    def formula(self):
        """Formula text, after input checks"""
        return check_formula_text(self.base_formula)

    @property
    def tokens(self):
        if self._tokens is None:
            self._tokens = tokenize(self.formula, self.context, self.sheet)
        return self._tokens

    @property
    def tree(self):
        if self._tree is None:
            self._tree = _build(self.tokens, self.context, self.sheet,
                                self.origin, self.mode, ())
            self._tree.set_formula_length(len(self.formula))
        return self._tree


def build_trees(excel, mode=RenderMode.GENERALIZED, sheets=None):
    """ Build the tree of every formula in a workbook

    A formula which fails to build is logged and skipped.

    :param excel: `ExcelOpxWrapper`
    :param mode: `RenderMode` for the trees
    :param sheets: sheet names to restrict to, all sheets if None
    :return: generator of (`FormulaCell`, root `FormulaNode`)
    """
    context = excel.defined_names
    for formula_cell in excel.formula_cells(sheets=sheets):
        try:
            tree = build_tree(formula_cell.formula, context,
                              formula_cell.sheet_index, formula_cell.origin,
                              mode)
        except Exception as exc:
            celtree_logger.warning(
                f'Skipping {formula_cell.address} '
                f'{formula_cell.formula}: {type(exc).__name__}: {exc}')
            continue

        yield formula_cell, tree
