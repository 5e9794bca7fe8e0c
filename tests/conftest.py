# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

import pytest
from openpyxl import Workbook
from openpyxl.workbook.defined_name import DefinedName

from celtree.excelformula import NameContext
from celtree.excelwrapper import ExcelOpxWrapperNoData


@pytest.fixture(scope='session')
def names():
    return NameContext(
        {
            'Rate': 'Sheet1!$B$1',
            'Total': '=SUM(A1:A10)',
            'Loop': 'Loop+1',
            'First': 'Second*2',
            'Second': 'First+1',
        },
        sheet_names=['Sheet1', 'My Sheet'],
    )


def make_workbook():
    workbook = Workbook()
    ws = workbook.active
    ws.title = 'Sheet1'
    ws['A1'] = 1
    ws['A2'] = 2
    ws['B1'] = '=SUM(A1:A2)+1'
    ws['B2'] = '=A2*Rate'
    ws['B3'] = '=Loop+1'
    ws['B4'] = '=NoSuchName'

    ws2 = workbook.create_sheet('My Sheet')
    ws2['C2'] = 3
    ws2['C3'] = "='My Sheet'!C2+Sheet1!$A$1"
    ws2['D1'] = '=Local*2'

    workbook.defined_names['Rate'] = DefinedName('Rate', attr_text='Sheet1!$A$1')
    workbook.defined_names['Loop'] = DefinedName('Loop', attr_text='Loop+1')
    ws2.defined_names['Local'] = DefinedName(
        'Local', attr_text="'My Sheet'!$C$2")
    return workbook


@pytest.fixture
def workbook():
    return make_workbook()


@pytest.fixture
def excel(workbook):
    return ExcelOpxWrapperNoData(workbook)


@pytest.fixture
def fixture_xls_path(tmp_path):
    path = tmp_path / 'celtree.xlsx'
    make_workbook().save(path)
    return str(path)
