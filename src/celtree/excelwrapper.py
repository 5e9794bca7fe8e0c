# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

"""
    ExcelOpxWrapper : Loads post 2010 Excel formats from a file
    ExcelOpxWrapperNoData  :
        Can be initialized with a instance of an OpenPyXl workbook
"""

import collections
import os

from openpyxl import load_workbook, Workbook
from openpyxl.worksheet.formula import ArrayFormula

from celtree.excelformula import NameContext
from celtree.excelutil import quote_sheet


FormulaCell = collections.namedtuple(
    'FormulaCell', 'address sheet sheet_index origin formula')


class ExcelOpxWrapper:
    """ OpenPyXl access to the formulas and defined names of a workbook """

    def __init__(self, filename):
        self.filename = os.path.abspath(filename)
        self._defined_names = None
        self.workbook = None

    def load(self):
        self.workbook = load_workbook(self.filename)
        self._defined_names = None

    @property
    def defined_names(self):
        if self.workbook is not None and self._defined_names is None:
            self._defined_names = NameContext.from_workbook(self.workbook)
        return self._defined_names

    @property
    def sheet_names(self):
        return self.workbook.sheetnames

    @staticmethod
    def cell_to_formula(cell):
        value = cell.value
        if isinstance(value, ArrayFormula):
            value = value.text
        if isinstance(value, str) and value.startswith('=') and len(value) > 1:
            return value
        return None

    def formula_cells(self, sheets=None):
        """ Every cell holding a formula

        :param sheets: sheet names to restrict to, all sheets if None
        :return: generator of `FormulaCell`
        """
        for sheet_index, worksheet in enumerate(self.workbook.worksheets):
            if sheets is not None and worksheet.title not in sheets:
                continue

            for row in worksheet.iter_rows():
                for cell in row:
                    formula = self.cell_to_formula(cell)
                    if formula is None:
                        continue

                    yield FormulaCell(
                        address=f'{quote_sheet(worksheet.title)}!'
                                f'{cell.coordinate}',
                        sheet=worksheet.title,
                        sheet_index=sheet_index,
                        origin=(cell.row - 1, cell.column - 1),
                        formula=formula,
                    )


class ExcelOpxWrapperNoData(ExcelOpxWrapper):
    """ ExcelOpxWrapper interface from an already open openpyxl workbook """

    def __init__(self, workbook, filename='Unknown'):
        super().__init__(filename=filename)
        assert isinstance(workbook, Workbook)
        self.workbook = workbook
