# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

import collections

import pytest

from celtree.excelformula import (
    FormulaToken,
    GrammarParseError,
    NameContext,
    Token,
    tokenize,
    Tokenizer,
)


FormulaTest = collections.namedtuple('FormulaTest', 'formula postfix')


def stringify_postfix(tokens):
    return "|".join([str(x) for x in tokens])


postfix_inputs = [
    FormulaTest('=A1', 'A1'),
    FormulaTest('=$B$2', '$B$2'),
    FormulaTest('=A1:B2', 'A1:B2'),
    FormulaTest('=SUM(B5:B15)', 'B5:B15|SUM'),
    FormulaTest('=SUM(A1,B1)', 'A1|B1|SUM'),
    FormulaTest('=sum(A1)', 'A1|SUM'),
    FormulaTest('=A1+B1*2', 'A1|B1|2|*|+'),
    FormulaTest('=(A1+B1)*2', 'A1|B1|+|()|2|*'),
    FormulaTest('=-A1', 'A1|-'),
    FormulaTest('=-2^2', '2|-|2|^'),
    FormulaTest('=50%', '50|%'),
    FormulaTest('=100%*2', '100|%|2|*'),
    FormulaTest('=A1&"x"', 'A1|"x"|&'),
    FormulaTest('=IF(A1>=1,TRUE,#N/A)', 'A1|1|>=|TRUE|#N/A|IF'),
    FormulaTest('=PI()', 'PI'),
    FormulaTest('=IF(A1,,1)', 'A1||1|IF'),
    FormulaTest('=IF(A1, ,2)', 'A1||ATTR_SPACE|2|IF'),
    FormulaTest('=SUM(A1:B2 B1:C3)', 'MEM_FUNC|A1:B2|B1:C3| |SUM'),
    FormulaTest('=SUM((A1,B1))', 'MEM_FUNC|A1|B1|,|()|SUM'),
    FormulaTest('=1 + 2', '1|ATTR_SPACE|ATTR_SPACE|2|+'),
    FormulaTest('=_xlfn.STDEV.S(A1:A3)', 'A1:A3|STDEV.S'),
    FormulaTest('={1,2;3,4}', '{1,2;3,4}'),
    FormulaTest('=A1:INDEX(B1:B3,1)', 'A1|B1:B3|1|INDEX|:'),
    FormulaTest("=Sheet1!A1+'My Sheet'!B2", "Sheet1!A1|'My Sheet'!B2|+"),
    FormulaTest('=Rate*2', 'Rate|2|*'),
    FormulaTest('=Sheet1!Rate', 'Sheet1!Rate'),
]


@pytest.mark.parametrize('formula, postfix', postfix_inputs)
def test_tokenize(formula, postfix, names):
    assert stringify_postfix(tokenize(formula, names)) == postfix


def test_tokenize_without_leading_equal():
    assert stringify_postfix(tokenize('A1+1')) == 'A1|1|+'


@pytest.mark.parametrize(
    'formula, subtype', (
        ('=A1', FormulaToken.REFERENCE),
        ("='My Sheet'!A1", FormulaToken.REFERENCE),
        ('=A1:B2', FormulaToken.RANGE),
        ('=A:A', FormulaToken.RANGE),
        ('=Sheet1!A1:Sheet1!B2', FormulaToken.RANGE),
        ('=1.5', FormulaToken.NUMBER),
        ('="s"', FormulaToken.TEXT),
        ('=TRUE', FormulaToken.LOGICAL),
        ('=false', FormulaToken.LOGICAL),
        ('=#REF!', FormulaToken.ERROR),
        ('=Table1[Col]', FormulaToken.TABLE),
        ('={1,2}', Token.ARRAY),
    )
)
def test_operand_category(formula, subtype):
    tokens = tokenize(formula)
    assert len(tokens) == 1
    assert tokens[0].kind == FormulaToken.OPERAND
    assert tokens[0].subtype == subtype


def test_operation_tokens(names):
    tokens = tokenize('=IF(-A1<>1,SUM(A1:A2),Rate%)', names)
    assert [(t.kind, t.value, t.subtype, t.arity) for t in tokens] == [
        (FormulaToken.OPERAND, 'A1', FormulaToken.REFERENCE, 0),
        (FormulaToken.OPERATION, '-', FormulaToken.OP_PRE, 1),
        (FormulaToken.OPERAND, '1', FormulaToken.NUMBER, 0),
        (FormulaToken.OPERATION, '<>', FormulaToken.OP_IN, 2),
        (FormulaToken.OPERAND, 'A1:A2', FormulaToken.RANGE, 0),
        (FormulaToken.ATTR_SUM, 'SUM', '', 1),
        (FormulaToken.NAME, 'Rate', '', 0),
        (FormulaToken.OPERATION, '%', FormulaToken.OP_POST, 1),
        (FormulaToken.OPERATION, 'IF', FormulaToken.FUNC, 3),
    ]


@pytest.mark.parametrize(
    'formula', (
        '=SUM(A1',
        '=A1)',
        '="abc',
        '=NoSuchName',
        '=Rate+1',
        '={1,2',
        '=1+',
        '=*2',
        '=(1)(2)',
    )
)
def test_tokenize_errors(formula):
    with pytest.raises(GrammarParseError):
        tokenize(formula)


def test_tokenizer_intersection():
    items = Tokenizer('=A1:B2 B1:C3').items
    assert [(t.value, t.type, t.subtype) for t in items] == [
        ('A1:B2', Token.OPERAND, Token.RANGE),
        (' ', Token.OP_IN, Token.INTERSECT),
        ('B1:C3', Token.OPERAND, Token.RANGE),
    ]


def test_tokenizer_keeps_whitespace():
    items = Tokenizer('=A1 + B1').items
    assert [t.type for t in items] == [
        Token.OPERAND, Token.WSPACE, Token.OP_IN, Token.WSPACE, Token.OPERAND]


def test_tokenizer_collapses_arrays():
    items = Tokenizer('=SUM({1,2;3,4})').items
    assert [(t.value, t.type) for t in items] == [
        ('SUM(', Token.FUNC),
        ('{1,2;3,4}', Token.OPERAND),
        (')', Token.FUNC),
    ]


@pytest.mark.parametrize(
    'token, simple_form, args, text', (
        (FormulaToken(FormulaToken.OPERATION, 'IF', FormulaToken.FUNC, 3),
         'IF()', ['A1', '1', '2'], 'IF(A1,1,2)'),
        (FormulaToken(FormulaToken.OPERATION, 'PI', FormulaToken.FUNC, 0),
         'PI()', [], 'PI()'),
        (FormulaToken(FormulaToken.ATTR_SUM, 'SUM', arity=1),
         'SUM()', ['A1:A2'], 'SUM(A1:A2)'),
        (FormulaToken(FormulaToken.OPERATION, '-', FormulaToken.OP_PRE, 1),
         '-', ['A1'], '-A1'),
        (FormulaToken(FormulaToken.OPERATION, '%', FormulaToken.OP_POST, 1),
         '%', ['50'], '50%'),
        (FormulaToken(FormulaToken.OPERATION, '+', FormulaToken.OP_IN, 2),
         '+', ['A1', '1'], 'A1+1'),
        (FormulaToken(FormulaToken.OPERATION, ' ', FormulaToken.OP_IN, 2),
         ' ', ['A1:B2', 'B1:C3'], 'A1:B2 B1:C3'),
    )
)
def test_formula_token_format(token, simple_form, args, text):
    assert token.simple_form == simple_form
    assert token.format(args) == text


def test_formula_token_bookkeeping():
    assert FormulaToken(FormulaToken.MEM_FUNC).is_bookkeeping
    assert FormulaToken(FormulaToken.ATTR_SPACE).is_bookkeeping
    assert not FormulaToken(FormulaToken.PAREN, '()').is_bookkeeping
    assert not FormulaToken(FormulaToken.OPERAND, 'A1').is_bookkeeping
    assert str(FormulaToken(FormulaToken.MEM_FUNC)) == 'MEM_FUNC'


def test_name_context(names):
    assert 'Rate' in names
    assert 'RATE' in names
    assert 'Nope' not in names
    assert len(names) == 5

    assert names.definition('total') == 'SUM(A1:A10)'
    assert names.has_name('Sheet1!Rate')
    assert names.has_name("'My Sheet'!Rate")
    assert not names.has_name('Sheet9!Rate')

    with pytest.raises(GrammarParseError, match='Unresolved name'):
        names.definition('Nope')


def test_name_context_sheet_scope():
    context = NameContext({'Local': '1'}, sheet_names=['Sheet1', 'Sheet2'])
    context.add('Local', '=Sheet2!$A$1', sheet=1)

    assert context.definition('Local', 0) == '1'
    assert context.definition('Local', 1) == 'Sheet2!$A$1'
    assert context.definition('Sheet2!Local', 0) == 'Sheet2!$A$1'

    context.add('OnlyTwo', '2', sheet=1)
    assert context.has_name('OnlyTwo', 1)
    assert not context.has_name('OnlyTwo', 0)
    assert 'OnlyTwo' not in context


def test_name_context_resolve(names):
    tokens = names.resolve(FormulaToken(FormulaToken.NAME, 'Total'))
    assert stringify_postfix(tokens) == 'A1:A10|SUM'


def test_name_context_from_workbook(workbook):
    context = NameContext.from_workbook(workbook)
    assert context.sheet_names == ['Sheet1', 'My Sheet']
    assert len(context) == 3
    assert context.definition('Rate') == 'Sheet1!$A$1'
    assert context.definition('Local', 1) == "'My Sheet'!$C$2"
    assert not context.has_name('Local', 0)
