# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

import collections
import logging

import openpyxl.formula.tokenizer as tokenizer

from celtree.excelutil import (
    CelTreeException,
    is_table_reference,
    reference_category,
    split_sheetname,
    unquote_sheetname,
)


REFERENCE_OPERATORS = frozenset((':', ',', ' '))

celtree_logger = logging.getLogger('celtree')


class GrammarParseError(CelTreeException):
    """Formula text could not be turned into tokens"""


class Tokenizer(tokenizer.Tokenizer):
    """Amend openpyxl tokenizer"""

    def __init__(self, formula):
        if not formula.startswith('='):
            formula = '=' + formula
        try:
            super(Tokenizer, self).__init__(formula)
        except (tokenizer.TokenizerError, IndexError) as exc:
            # IndexError is an unmatched closer
            raise GrammarParseError(f'{formula}: {exc}') from exc
        self.items = self._items()

    def _items(self):
        """Convert to use our Token"""
        t = [None] + self._collapse_arrays(
            [Token.from_token(t) for t in self.items]) + [None]

        tokens = []
        for prev_token, token, next_token in zip(t, t[1:], t[2:]):
            if token.type != Token.WSPACE:
                if (token.matches(type_=Token.FUNC, subtype=Token.OPEN) and
                        ':' in token.value):

                    # split the address on the ':'
                    addr, func = token.value.rsplit(':', maxsplit=1)
                    tokens.append(Token(addr, Token.OPERAND, Token.RANGE))
                    tokens.append(Token(':', Token.OP_IN, ''))
                    token.value = func
                    tokens.append(token)

                elif (token.matches(type_=Token.OPERAND,
                                    subtype=Token.RANGE) and
                      token.value.startswith(':')):
                    # split the address on the ':'
                    tokens.append(Token(':', Token.OP_IN, ''))
                    token.value = token.value[1:]
                    tokens.append(token)

                else:
                    tokens.append(token)

            elif prev_token and next_token and (
                prev_token.matches(type_=Token.FUNC, subtype=Token.CLOSE) or
                prev_token.matches(type_=Token.PAREN, subtype=Token.CLOSE) or
                prev_token.type == Token.OPERAND
            ) and (
                next_token.matches(type_=Token.FUNC, subtype=Token.OPEN) or
                next_token.matches(type_=Token.PAREN, subtype=Token.OPEN) or
                next_token.type == Token.OPERAND
            ):
                # this whitespace is an intersect operator
                tokens.append(Token(' ', Token.OP_IN, Token.INTERSECT))

            else:
                tokens.append(token)

        return tokens

    @staticmethod
    def _collapse_arrays(items):
        """Array constants are a single operand, eg: {1,2;3,4}"""
        tokens = []
        depth = 0
        for token in items:
            if token.type == Token.ARRAY or depth:
                if token.matches(type_=Token.ARRAY, subtype=Token.OPEN):
                    if not depth:
                        array = []
                    depth += 1
                elif token.matches(type_=Token.ARRAY, subtype=Token.CLOSE):
                    depth -= 1
                array.append(token.value)
                if not depth:
                    tokens.append(
                        Token(''.join(array), Token.OPERAND, Token.ARRAY))
            else:
                tokens.append(token)

        if depth:
            raise GrammarParseError('Mismatched array braces')
        return tokens


class Token(tokenizer.Token):
    """Amend openpyxl token"""

    INTERSECT = "INTERSECT"
    EMPTY = "EMPTY"
    ARRAY = "ARRAY"

    class Precedence:
        """Small wrapper class to manage operator precedence during parsing"""

        def __init__(self, precedence, associativity):
            self.precedence = precedence
            self.associativity = associativity

        def __lt__(self, other):
            return (self.precedence < other.precedence or
                    self.associativity == "left" and
                    self.precedence == other.precedence
                    )

    precedences = {
        # http://office.microsoft.com/en-us/excel-help/
        #   calculation-operators-and-precedence-HP010078886.aspx
        ':': Precedence(8, 'left'),
        ' ': Precedence(8, 'left'),  # range intersection
        ',': Precedence(8, 'left'),
        'u': Precedence(7, 'right'),  # unary operator
        '%': Precedence(6, 'left'),
        '^': Precedence(5, 'left'),
        '*': Precedence(4, 'left'),
        '/': Precedence(4, 'left'),
        '+': Precedence(3, 'left'),
        '-': Precedence(3, 'left'),
        '&': Precedence(2, 'left'),
        '=': Precedence(1, 'left'),
        '<': Precedence(1, 'left'),
        '>': Precedence(1, 'left'),
        '<=': Precedence(1, 'left'),
        '>=': Precedence(1, 'left'),
        '<>': Precedence(1, 'left'),
    }

    @classmethod
    def from_token(cls, token, value=None, type_=None, subtype=None):
        return cls(
            token.value if value is None else value,
            token.type if type_ is None else type_,
            token.subtype if subtype is None else subtype
        )

    @property
    def is_operator(self):
        return self.type in (Token.OP_PRE, Token.OP_IN, Token.OP_POST)

    @property
    def is_funcopen(self):
        return self.type == Token.FUNC and self.subtype == Token.OPEN

    def matches(self, type_=None, subtype=None, value=None):
        return ((type_ is None or self.type == type_) and
                (subtype is None or self.subtype == subtype) and
                (value is None or self.value == value))

    @property
    def precedence(self):
        assert self.is_operator
        return self.precedences[
            'u' if self.type == Token.OP_PRE else self.value]


class FormulaToken(collections.namedtuple(
        'FormulaToken', 'kind value subtype arity')):
    """ A typed token, in postfix order, as consumed by the tree builder

    **Tuple Attributes:**

    .. py:attribute:: kind

        OPERAND, NAME, OPERATION, ATTR_SUM, PAREN or a bookkeeping marker

    .. py:attribute:: value

        Source text for operands and names, name or symbol for operations

    .. py:attribute:: subtype

        Category for operands, FUNC or OP_PRE/OP_IN/OP_POST for operations

    .. py:attribute:: arity

        Number of operands consumed by an operation
    """

    OPERAND = 'OPERAND'
    NAME = 'NAME'
    OPERATION = 'OPERATION'
    ATTR_SUM = 'ATTR_SUM'
    PAREN = 'PAREN'
    MEM_FUNC = 'MEM_FUNC'
    ATTR_SPACE = 'ATTR_SPACE'

    BOOKKEEPING = frozenset((MEM_FUNC, ATTR_SPACE))

    # operand categories
    REFERENCE = 'REFERENCE'
    RANGE = 'RANGE'
    NUMBER = 'NUMBER'
    TEXT = 'TEXT'
    LOGICAL = 'LOGICAL'
    ERROR = 'ERROR'
    TABLE = 'TABLE'

    # operation subtypes
    FUNC = 'FUNC'
    OP_PRE = 'OP_PRE'
    OP_IN = 'OP_IN'
    OP_POST = 'OP_POST'

    def __new__(cls, kind, value='', subtype='', arity=0):
        return super(FormulaToken, cls).__new__(
            cls, kind, value, subtype, arity)

    def __str__(self):
        return self.kind if self.is_bookkeeping else self.value

    @property
    def is_bookkeeping(self):
        return self.kind in self.BOOKKEEPING

    @property
    def simple_form(self):
        """Operator identity, without any arguments"""
        if self.kind == self.ATTR_SUM:
            return 'SUM()'
        elif self.subtype == self.FUNC:
            return f'{self.value}()'
        return self.value

    def format(self, args):
        """ Render an operation with its argument text substituted

        :param args: the rendered arguments, first to last
        :return: formula text for the operation
        """
        if self.kind == self.ATTR_SUM:
            return f'SUM({args[0]})'
        elif self.subtype == self.FUNC:
            return f'{self.value}({",".join(args)})'
        elif self.subtype == self.OP_PRE:
            return f'{self.value}{args[0]}'
        elif self.subtype == self.OP_POST:
            return f'{args[0]}{self.value}'
        else:
            return f'{args[0]}{self.value}{args[1]}'


OPERATOR_SUBTYPES = {
    Token.OP_PRE: FormulaToken.OP_PRE,
    Token.OP_IN: FormulaToken.OP_IN,
    Token.OP_POST: FormulaToken.OP_POST,
}


class NameContext:
    """ Named range definitions used to resolve names found in formulas

    Names are case insensitive, and are either workbook global or scoped
    to a single sheet (by sheet index).
    """

    def __init__(self, names=None, sheet_names=()):
        self.sheet_names = list(sheet_names)
        self._names = {}
        for name, definition in (names or {}).items():
            self.add(name, definition)

    def __contains__(self, name):
        return self._lookup(name, None) is not None

    def __len__(self):
        return len(self._names)

    def add(self, name, definition, sheet=None):
        """ Define a name

        :param name: name as used in formulas
        :param definition: formula text of the definition
        :param sheet: sheet index for sheet scoped names, None for global
        """
        if definition.startswith('='):
            definition = definition[1:]
        self._names[name.upper(), sheet] = definition

    def _lookup(self, name, sheet):
        prefix, name = split_sheetname(name)
        if prefix:
            sheet_name = unquote_sheetname(prefix[:-1])
            if sheet_name not in self.sheet_names:
                return None
            sheet = self.sheet_names.index(sheet_name)

        key = name.upper()
        return self._names.get((key, sheet), self._names.get((key, None)))

    def has_name(self, name, sheet=0):
        return self._lookup(name, sheet) is not None

    def definition(self, name, sheet=0):
        """ Find the definition of a name, sheet scope first

        :param name: name, optionally qualified with a sheet `Sheet1!name`
        :param sheet: index of the active sheet
        :return: formula text of the definition
        """
        definition = self._lookup(name, sheet)
        if definition is None:
            raise GrammarParseError(f'Unresolved name: {name}')
        return definition

    def resolve(self, token, sheet=0):
        """Token sequence for the definition of a name token"""
        celtree_logger.debug(f'Resolving name: {token.value}')
        return tokenize(self.definition(token.value, sheet), self, sheet)

    @classmethod
    def from_workbook(cls, workbook):
        """ Collect the defined names from an openpyxl workbook

        :param workbook: `openpyxl.Workbook`
        :return: `NameContext`
        """
        context = cls(sheet_names=workbook.sheetnames)
        for d_name in workbook.defined_names.values():
            if d_name.attr_text:
                context.add(d_name.name, d_name.attr_text)

        for idx, worksheet in enumerate(workbook.worksheets):
            for d_name in worksheet.defined_names.values():
                if d_name.attr_text:
                    context.add(d_name.name, d_name.attr_text, sheet=idx)
        return context


def _formula_token(token, context, sheet, num_args=0):
    """Convert an (amended) openpyxl token into a postfix FormulaToken"""
    if token.type == Token.OPERAND:
        if token.subtype != Token.RANGE:
            return FormulaToken(FormulaToken.OPERAND, token.value, token.subtype)

        elif token.value.upper() in ('TRUE', 'FALSE'):
            # openpyxl only recognizes upper case booleans
            return FormulaToken(
                FormulaToken.OPERAND, token.value, FormulaToken.LOGICAL)

        category = reference_category(token.value)
        if category is not None:
            return FormulaToken(FormulaToken.OPERAND, token.value, category)

        elif is_table_reference(token.value):
            return FormulaToken(
                FormulaToken.OPERAND, token.value, FormulaToken.TABLE)

        elif context is not None and context.has_name(token.value, sheet):
            return FormulaToken(FormulaToken.NAME, token.value)

        raise GrammarParseError(f'Unresolved name: {token.value}')

    elif token.is_funcopen:
        func = token.value.strip('(').upper()
        if func.startswith('_XLFN.'):
            func = func[6:]
        if func == 'SUM' and num_args == 1:
            return FormulaToken(FormulaToken.ATTR_SUM, 'SUM', arity=1)
        return FormulaToken(
            FormulaToken.OPERATION, func, FormulaToken.FUNC, num_args)

    elif token.is_operator:
        arity = 2 if token.type == Token.OP_IN else 1
        return FormulaToken(FormulaToken.OPERATION, token.value,
                            OPERATOR_SUBTYPES[token.type], arity)

    raise GrammarParseError(f'Unknown token type: {repr(token)}')


def tokenize(formula, context=None, sheet=0):
    """
    Parse an excel formula expression into postfix typed tokens

    Core algorithm taken from wikipedia with varargs extensions from
    http://www.kallisti.net.nz/blog/2008/02/extension-to-the-shunting-yard-
        algorithm-to-allow-variable-numbers-of-arguments-to-functions/

    :param formula: formula text, leading '=' optional
    :param context: `NameContext` used to recognize named ranges
    :param sheet: index of the sheet the formula lives on
    :return: list of `FormulaToken`
    """
    lexer = Tokenizer(formula)

    # amend token stream to ease tree building
    tokens = []
    for i, token in enumerate(lexer.items):
        # whitespace does not fill an argument slot
        next_token = next((t for t in lexer.items[i + 1:]
                           if t.type != Token.WSPACE), None)

        if token.matches(Token.FUNC, Token.OPEN):
            tokens.append(token)
            token = Token('(', Token.PAREN, Token.OPEN)
            if next_token is not None and next_token.matches(
                    Token.SEP, Token.ARG):
                tokens.append(token)
                token = Token('', Token.OPERAND, Token.EMPTY)

        elif token.matches(Token.FUNC, Token.CLOSE):
            token = Token(')', Token.PAREN, Token.CLOSE)

        elif token.matches(Token.SEP, Token.ARG):
            if next_token is not None and (
                    next_token.matches(Token.SEP, Token.ARG) or
                    next_token.matches(Token.FUNC, Token.CLOSE)):
                tokens.append(token)
                token = Token('', Token.OPERAND, Token.EMPTY)

        tokens.append(token)

    output = []
    stack = []
    were_values = []
    arg_count = []
    group_starts = []
    group_ref_ops = []

    def emit(token):
        if token.is_operator and token.value in REFERENCE_OPERATORS:
            if group_ref_ops:
                group_ref_ops[-1] = True
        output.append(token)

    for token in tokens:
        if token.type == token.OPERAND:

            emit(token)
            if were_values:
                were_values[-1] = True

        elif token.is_funcopen:

            stack.append(token)
            arg_count.append(0)
            if were_values:
                were_values[-1] = True
            were_values.append(False)

        elif token.type == token.SEP:

            while stack and (stack[-1].subtype != token.OPEN):
                emit(stack.pop())

            if not len(were_values):
                raise GrammarParseError("Mismatched or misplaced parentheses")

            were_values.pop()
            arg_count[-1] += 1
            were_values.append(False)

        elif token.is_operator:

            while stack and stack[-1].is_operator and (
                    token.precedence < stack[-1].precedence):
                emit(stack.pop())

            stack.append(token)

        elif token.subtype == token.OPEN:
            assert token.type == token.PAREN
            stack.append(token)
            group_starts.append(len(output))
            group_ref_ops.append(False)

        elif token.subtype == token.CLOSE:

            while stack and stack[-1].subtype != Token.OPEN:
                emit(stack.pop())

            if not stack or not group_starts:
                raise GrammarParseError("Mismatched or misplaced parentheses")

            stack.pop()
            start, had_ref_op = group_starts.pop(), group_ref_ops.pop()
            if had_ref_op:
                output.insert(start, FormulaToken(FormulaToken.MEM_FUNC))

            if stack and stack[-1].is_funcopen:
                func = stack.pop()
                num_args = arg_count.pop() + int(were_values.pop())
                output.append(_formula_token(func, context, sheet, num_args))
            else:
                output.append(FormulaToken(FormulaToken.PAREN, '()'))

        elif token.type == Token.WSPACE:
            output.append(FormulaToken(FormulaToken.ATTR_SPACE))

        else:
            raise GrammarParseError(f'Unexpected token: {token}')

    while stack:
        if stack[-1].subtype in (Token.OPEN, Token.CLOSE):
            raise GrammarParseError("Mismatched or misplaced parentheses")

        emit(stack.pop())

    output = [t if isinstance(t, FormulaToken) else
              _formula_token(t, context, sheet) for t in output]
    _check_operands(output, formula)
    return output


def _check_operands(tokens, formula):
    """Every operation must find its operands, leaving a single value"""
    available = 0
    for token in tokens:
        if token.is_bookkeeping:
            continue

        elif token.kind in (FormulaToken.OPERAND, FormulaToken.NAME):
            available += 1

        elif token.kind == FormulaToken.PAREN:
            if not available:
                raise GrammarParseError(f'Empty parentheses: {formula}')

        elif available < token.arity:
            raise GrammarParseError(
                f"Missing operand for '{token.simple_form}': {formula}")

        else:
            available -= token.arity - 1

    if available != 1:
        raise GrammarParseError(f'Missing operator: {formula}')
