"""
Pytest configuration for sqlagg tests.

Every test starts from default engine settings, and the employee table used
throughout the suite is available as a fixture.
"""

import pandas as pd
import pytest

from sqlagg.config import reset_config

EMPLOYEES = [
    {'Name': 'Alice', 'Dept': 'IT', 'Region': 'East', 'Salary': 50000, 'Bonus': 5000},
    {'Name': 'Bob', 'Dept': 'IT', 'Region': 'West', 'Salary': 70000, 'Bonus': None},
    {'Name': 'Carol', 'Dept': 'HR', 'Region': 'East', 'Salary': 40000, 'Bonus': 2000},
    {'Name': 'Dan', 'Dept': 'Sales', 'Region': 'East', 'Salary': 55000, 'Bonus': 8000},
    {'Name': 'Eve', 'Dept': 'Sales', 'Region': 'East', 'Salary': 45000, 'Bonus': None},
    {'Name': 'Frank', 'Dept': None, 'Region': 'West', 'Salary': 30000, 'Bonus': 1000},
    {'Name': 'Grace', 'Dept': None, 'Region': None, 'Salary': None, 'Bonus': None},
]


@pytest.fixture(autouse=True)
def default_config():
    """Reset engine settings before and after each test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def dept_rows():
    """The three-row Dept/Salary example."""
    return [
        {'Dept': 'IT', 'Salary': 50000},
        {'Dept': 'IT', 'Salary': 70000},
        {'Dept': 'HR', 'Salary': 40000},
    ]


@pytest.fixture
def employees():
    return [dict(row) for row in EMPLOYEES]


@pytest.fixture
def employees_df():
    return pd.DataFrame(EMPLOYEES)
