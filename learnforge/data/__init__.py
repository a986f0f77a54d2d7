"""
learnforge.data — Batches, Iterators & Table Descriptions
===========================================================
Everything the learner consumes as data:

    - iterator.py    — DataSet batch + restartable iterators
                       (list, tensor/numpy, torch DataLoader adapter)
    - table_spec.py  — column/table descriptions and column-selection checks

Information Flow:
    numpy / tensors / DataLoader → DataSetIterator → regime loop → network
"""

from learnforge.data.iterator import (
    DataLoaderIterator,
    DataSet,
    DataSetIterator,
    ListDataSetIterator,
    TensorDataSetIterator,
)
from learnforge.data.table_spec import (
    ColumnSpec,
    ColumnType,
    TableSpec,
    name_type_list,
    validate_column_selection,
)
