"""
conftest.py - Shared test fixtures for phenodist

pytest reads this file before running any test. Every fixture defined here
is available to all test files by name, without an import.

    @pytest.fixture
    def my_fixture():
        return something_useful

    def test_something(my_fixture):   ← pytest injects the fixture
        assert my_fixture == expected
"""

import matplotlib

matplotlib.use("Agg")  # no display needed for plot tests

import numpy as np
import pandas as pd
import pytest
from phenodist.data.core import CellTable

# ===========================================================================
# Constants — the size of the random dataset
# ===========================================================================

N_CELLS = 60
PHENOTYPES = ["CK+", "CD8+", "CD68+", "other"]


# ===========================================================================
# Fixture 1: three cells with a known nearest neighbor
# ===========================================================================


@pytest.fixture
def tiny_df():
    """
    Three cells on the x axis:

        id=1 at (0, 0)  CK+
        id=2 at (10, 0) CD8+
        id=3 at (3, 0)  CD8+

    The nearest CD8+ cell to cell 1 is cell 3, at distance 3.
    """
    return pd.DataFrame(
        {
            "Cell ID": [1, 2, 3],
            "Cell X Position": [0.0, 10.0, 3.0],
            "Cell Y Position": [0.0, 0.0, 0.0],
            "Phenotype": ["CK+", "CD8+", "CD8+"],
        }
    )


# ===========================================================================
# Fixture 2: small table with an expression column containing NaN
# ===========================================================================


@pytest.fixture
def cell_df():
    """
    Eight cells with a PDL1 expression column and a tissue category.

    PDL1 is missing (NaN) for cells 2 and 6, so predicates on PDL1 must
    treat those rows as not selected.
    """
    return pd.DataFrame(
        {
            "Cell ID": [1, 2, 3, 4, 5, 6, 7, 8],
            "Cell X Position": [0.0, 5.0, 20.0, 2.0, 8.0, 30.0, 31.0, 50.0],
            "Cell Y Position": [0.0, 5.0, 0.0, 1.0, 3.0, 30.0, 30.0, 50.0],
            "Phenotype": ["CK+", "CK+", "CK+", "CD8+", "CD8+", "CD68+", "CD68+", "other"],
            "PDL1": [5.0, np.nan, 1.0, 4.0, 0.5, np.nan, 7.0, 2.0],
            "Tissue Category": ["Tumor", "Tumor", "Stroma", "Tumor",
                                "Stroma", "Stroma", "Tumor", "Stroma"],
        }
    )


@pytest.fixture
def cell_table(cell_df):
    """cell_df wrapped as a CellTable."""
    return CellTable(cell_df, verbose=False)


# ===========================================================================
# Fixture 3: random field with a few cells missing positions
# ===========================================================================


@pytest.fixture
def random_df():
    """
    60 random cells in a 1000×1000 field.

    Cells 0 and 1 have no X position; they must be dropped from point sets
    but still count as rows for selection masks.
    """
    rng = np.random.default_rng(42)

    x = rng.uniform(0, 1000, N_CELLS)
    y = rng.uniform(0, 1000, N_CELLS)
    x[:2] = np.nan

    pdl1 = rng.uniform(0, 10, N_CELLS)
    pdl1[rng.choice(N_CELLS, 5, replace=False)] = np.nan

    return pd.DataFrame(
        {
            "Cell ID": np.arange(100, 100 + N_CELLS),
            "Cell X Position": x,
            "Cell Y Position": y,
            "Phenotype": rng.choice(PHENOTYPES, N_CELLS),
            "PDL1": pdl1,
        }
    )


@pytest.fixture
def random_table(random_df):
    return CellTable(random_df, verbose=False)
