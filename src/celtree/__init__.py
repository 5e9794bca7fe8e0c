# -*- coding: UTF-8 -*-
#
# Copyright 2011-2019 by Dirk Gorissen, Stephen Rauch and Contributors
# All rights reserved.
# This file is part of the Pycel Library, Licensed under GPLv3 (the 'License')
# You may not use this work except in compliance with the License.
# You may obtain a copy of the Licence at:
#   https://www.gnu.org/licenses/gpl-3.0.en.html

from .excelformula import (  # noqa: F401
    FormulaToken,
    GrammarParseError,
    NameContext,
    tokenize,
)
from .excelutil import CelTreeException, MalformedRangeError  # noqa: F401
from .excelwrapper import (  # noqa: F401
    ExcelOpxWrapper,
    ExcelOpxWrapperNoData,
    FormulaCell,
)
from .formulanode import (  # noqa: F401
    ArityMismatchError,
    FormulaNode,
    Leaf,
    Operation,
    RenderMode,
    same_operator_identity,
)
from .treebuilder import (  # noqa: F401
    build_tree,
    build_trees,
    CyclicNameError,
    EmptyFormulaError,
    ExcelFormulaTree,
    IllegalQuotingError,
    MalformedFormulaError,
)
from .version import __version__  # noqa: F401
