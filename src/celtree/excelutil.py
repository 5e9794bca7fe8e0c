# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

import collections
import re

from openpyxl.utils import column_index_from_string, quote_sheetname


SHEET_PREFIX_RE_STR = r"(?:\[[^\]]+\])?(?:'(?:[^']|'')+'|[^'!\s(),;{}\"]+)!"
CELL_RE_STR = r"\$?[A-Za-z]{1,3}\$?\d+"
COL_RE_STR = r"\$?[A-Za-z]{1,3}"
ROW_RE_STR = r"\$?\d+"

REFERENCE_RE = re.compile(
    f"^(?:{SHEET_PREFIX_RE_STR})?{CELL_RE_STR}$")
RANGE_RE = re.compile(
    f"^(?:{SHEET_PREFIX_RE_STR})?"
    f"(?:{CELL_RE_STR}:(?:{SHEET_PREFIX_RE_STR})?{CELL_RE_STR}|"
    f"{COL_RE_STR}:(?:{SHEET_PREFIX_RE_STR})?{COL_RE_STR}|"
    f"{ROW_RE_STR}:(?:{SHEET_PREFIX_RE_STR})?{ROW_RE_STR})$")
TABLE_REF_RE = re.compile(r"^(?P<table_name>[^[]*)\[(?P<table_selector>.*)\]$")

COORDINATE_RE = re.compile(
    r"^(?:(?P<col_abs>\$)?(?P<col>[A-Za-z]{1,3}))?(?P<row_abs>\$)?(?P<row>\d+)?$")

RANGE_SEPARATOR = ':'
SHEET_SEPARATOR = '!'
QUOTE = "'"


class CelTreeException(Exception):
    """Base class for celtree errors"""


class MalformedRangeError(CelTreeException):
    """Range text which can not be split into exactly two halves"""


Coordinate = collections.namedtuple(
    'Coordinate', 'row row_relative col col_relative')


def reference_category(address):
    """ Classify operand text as a cell reference or a range

    :param address: operand text, eg: `A1`, `'my sheet'!$B$2:C4`, `A:A`
    :return: 'REFERENCE', 'RANGE' or None if not an address
    """
    # `A1:Sheet1!B2` also matches REFERENCE_RE
    if RANGE_RE.match(address):
        return 'RANGE'
    elif REFERENCE_RE.match(address):
        return 'REFERENCE'
    return None


def is_table_reference(address):
    return bool(TABLE_REF_RE.match(address))


def quote_sheet(sheet):
    if ' ' in sheet:
        sheet = quote_sheetname(sheet)
    return sheet


def unquote_sheetname(sheetname):
    """
    Remove quotes from around, an embedded "''" in, quoted sheetnames

    sheetnames with special characters are quoted in formulas
    This is the inverse of openpyxl.utils.quote_sheetname
    """
    if sheetname.startswith("'") and sheetname.endswith("'"):
        sheetname = sheetname[1:-1].replace("''", "'")
    return sheetname


def split_sheetname(address):
    """ Split an address at its last sheet separator

    The prefix is kept with the trailing '!' so it can be re-attached as is.

    :param address: `Sheet1!A1`, `'a!b'!A1` or `A1`
    :return: tuple of (prefix, coordinate)
    """
    idx = address.rfind(SHEET_SEPARATOR) + 1
    return address[:idx], address[idx:]


def find_halves(pieces, separator=RANGE_SEPARATOR):
    """ Rejoin pieces of a range that was split on the range separator

    More than one separator happens when a sheet name contains the
    separator.  Such sheet names are always quoted, so a piece is complete
    once it holds an even number of quotes.  Otherwise the separator is put
    back and the next piece is appended.

    :param pieces: the range text split on `separator`
    :param separator: the character the text was split on
    :return: tuple of the two halves
    """
    halves = []
    current = ''
    for i, piece in enumerate(pieces):
        current += piece
        if current.count(QUOTE) % 2 == 0:
            halves.append(current)
            current = ''
        else:
            current += separator

        if len(halves) == 2 and i < len(pieces) - 1:
            raise MalformedRangeError(
                f"Unexpected range construction: {separator.join(pieces)}")

    if len(halves) < 2:
        raise MalformedRangeError(
            f"Unexpected range construction: {separator.join(pieces)}")

    return tuple(halves)


def range_halves(address):
    """Split range text into its two end points"""
    pieces = address.split(RANGE_SEPARATOR)
    if len(pieces) == 1:
        raise MalformedRangeError(f"Not a proper range (no colon): {address}")
    elif len(pieces) > 2:
        return find_halves(pieces)
    return tuple(pieces)


def parse_coordinate(coordinate):
    """ Decode an A1 style coordinate

    Rows and columns are zero based.  A missing axis (whole column or whole
    row references) is returned as None.

    :param coordinate: `$A1`, `B$2`, `C`, `3`
    :return: `Coordinate`
    """
    match = COORDINATE_RE.match(coordinate)
    if match is None or not (match.group('col') or match.group('row')):
        raise ValueError(f"{coordinate} is not a valid coordinate")

    row = col = None
    if match.group('row'):
        row = int(match.group('row')) - 1
    if match.group('col'):
        col = column_index_from_string(match.group('col').upper()) - 1

    return Coordinate(row, not match.group('row_abs'),
                      col, not match.group('col_abs'))


def r1c1_coordinate(coordinate, origin):
    """ Change an A1 coordinate to R1C1 relative to an originating cell

    :param coordinate: `Coordinate`
    :param origin: (row, col) of the originating cell, zero based
    :return: R1C1 text, eg: `R[1]C3`
    """
    origin_row, origin_col = origin
    row = col = ''
    if coordinate.row is not None:
        row = (f'R[{coordinate.row - origin_row}]' if coordinate.row_relative
               else f'R{coordinate.row + 1}')
    if coordinate.col is not None:
        col = (f'C[{coordinate.col - origin_col}]' if coordinate.col_relative
               else f'C{coordinate.col + 1}')
    return row + col


def relative_address(address, origin):
    """ Translate a single cell reference to R1C1, keeping the sheet """
    prefix, coordinate = split_sheetname(address)
    return prefix + r1c1_coordinate(parse_coordinate(coordinate), origin)


def relative_range(address, origin):
    """ Translate a range to R1C1, keeping the sheet on each half """
    first, last = range_halves(address)
    return RANGE_SEPARATOR.join(
        relative_address(half, origin) for half in (first, last))


def upper_coordinates(address):
    """ Upper case the coordinates of an address, sheet names untouched

    :param address: `sheet1!a1`, `'a:b'!$a$1:b2`, `a:c`
    :return: address with coordinates in upper case, eg: `sheet1!A1`
    """
    segments = []
    quotes = 0
    for segment in address.split(RANGE_SEPARATOR):
        prefix, coordinate = split_sheetname(segment)
        quotes += segment.count(QUOTE)
        if quotes % 2 == 0 and COORDINATE_RE.match(coordinate):
            coordinate = coordinate.upper()
        segments.append(prefix + coordinate)
    return RANGE_SEPARATOR.join(segments)
