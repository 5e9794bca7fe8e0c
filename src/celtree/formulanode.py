# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

"""
    Expression tree nodes for a formula, and the canonical text of each node

    Leaf : a single operand (reference, range, literal)
    Operation : a function or operator applied to child nodes
"""

import logging

from celtree.excelformula import FormulaToken
from celtree.excelutil import (
    CelTreeException,
    relative_address,
    relative_range,
    upper_coordinates,
)


celtree_logger = logging.getLogger('celtree')


class ArityMismatchError(CelTreeException):
    """An operation was given a different number of arguments than declared"""


class RenderMode:
    """How newly built nodes stringify themselves"""

    VERBATIM = 'VERBATIM'
    GENERALIZED = 'GENERALIZED'
    RELATIVE = 'RELATIVE'

    modes = (VERBATIM, GENERALIZED, RELATIVE)

    @classmethod
    def validate(cls, mode):
        if mode not in cls.modes:
            raise ValueError(f'Unknown render mode: {mode}')
        return mode


class FormulaNode:
    """A generic node in the expression tree of a formula"""

    is_leaf = False

    def __init__(self, token, text, mode):
        self.token = token
        self.text = text
        self.mode = mode
        self.formula_length = None

    def __str__(self):
        return self.text

    def __repr__(self):
        return f'{type(self).__name__}<{self.text}>'

    @property
    def children(self):
        return ()

    @property
    def simple_form(self):
        """Canonical text with all argument information elided"""
        return self.text

    def wrap(self):
        """Fold a parenthesis into this node's text"""
        self.text = f'({self.text})'
        return self.text

    def set_formula_length(self, length):
        """ Record the length of the formula text the whole tree came from

        Used to later pick the shortest example formula for a shape.
        """
        self.formula_length = length
        for child in self.children:
            child.set_formula_length(length)

    def walk(self, depth=0):
        """Yield (depth, node) for every node in pre-order"""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def tree_string(self):
        """ Indented dump of the tree, one line per node

        Each line is prefixed with its depth, and four dots per level, eg:

            0.+
            1.....SUM()
            2.........~RANGE~
            1.....~NUM~
        """
        return ''.join(
            f'{depth}.{"...." * depth}{node.simple_form}\n'
            for depth, node in self.walk())


class Leaf(FormulaNode):
    """A single operand of a formula"""

    is_leaf = True

    type_markers = {
        FormulaToken.REFERENCE: '~REF~',
        FormulaToken.RANGE: '~RANGE~',
        FormulaToken.NUMBER: '~NUM~',
        FormulaToken.TEXT: '~STR~',
        FormulaToken.LOGICAL: '~BOOL~',
        FormulaToken.ERROR: '~ERROR~',
    }
    OTHER = 'OTHER'
    OTHER_MARKER = '~OTHER~'

    def __init__(self, token, origin=(0, 0), mode=RenderMode.GENERALIZED):
        self.category = (token.subtype if token.subtype in self.type_markers
                         else self.OTHER)
        self.raw = token.value
        self.origin = tuple(origin)
        self.wrapped = 0
        super(Leaf, self).__init__(
            token, render_leaf(token, self.category, self.origin, mode), mode)

    def wrap(self):
        # a bare operand is not re-parenthesized for canonicalization
        if self.mode != RenderMode.GENERALIZED:
            self.wrapped += 1
            super(Leaf, self).wrap()
        return self.text


class Operation(FormulaNode):
    """A function or operator applied to its arguments"""

    def __init__(self, token, args, mode=RenderMode.GENERALIZED):
        args = tuple(args)
        if token.arity != len(args):
            raise ArityMismatchError(
                f"'{token.simple_form}' expects {token.arity} "
                f"arguments, got {len(args)}")

        super(Operation, self).__init__(
            token, token.format([str(arg) for arg in args]), mode)
        self.op = token.simple_form
        self._children = args

    @property
    def arity(self):
        return self.token.arity

    @property
    def children(self):
        return self._children

    @property
    def simple_form(self):
        return self.op


def _verbatim_leaf(token, category, origin):
    if category == FormulaToken.LOGICAL:
        return token.value.upper()
    elif category in (FormulaToken.REFERENCE, FormulaToken.RANGE):
        return upper_coordinates(token.value.strip())
    return token.value.strip()


def _generalized_leaf(token, category, origin):
    if category == Leaf.OTHER:
        celtree_logger.warning(
            f'Unclassified operand: {token.value!r} ({token.subtype})')
        return Leaf.OTHER_MARKER
    return Leaf.type_markers[category]


def _relative_leaf(token, category, origin):
    if category == FormulaToken.REFERENCE:
        return relative_address(token.value, origin)
    elif category == FormulaToken.RANGE:
        return relative_range(token.value, origin)
    return _verbatim_leaf(token, category, origin)


LEAF_RENDERERS = {
    RenderMode.VERBATIM: _verbatim_leaf,
    RenderMode.GENERALIZED: _generalized_leaf,
    RenderMode.RELATIVE: _relative_leaf,
}


def render_leaf(token, category, origin, mode):
    """ Canonical text of an operand in the given render mode

    :param token: operand `FormulaToken`
    :param category: leaf category, one of the type markers keys or OTHER
    :param origin: (row, col) of the cell holding the formula, zero based
    :param mode: `RenderMode` value
    :return: canonical text
    """
    return LEAF_RENDERERS[RenderMode.validate(mode)](token, category, origin)


def same_operator_identity(node_a, node_b):
    """Do two nodes have the same shape at the top (ignoring arguments)"""
    return node_a.simple_form == node_b.simple_form
