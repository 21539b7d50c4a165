import pytest

from table.sheet import Sheet
from table.workbook import Workbook
from units.library import UnitLibrary


@pytest.fixture
def library():
    return UnitLibrary()


@pytest.fixture
def sheet(library):
    return Sheet("Sheet1", library)


@pytest.fixture
def workbook(library):
    return Workbook("Budget", library)
