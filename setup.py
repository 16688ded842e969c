import os
import re
from setuptools import setup

# get the path of the current file
script_dir = os.path.dirname(os.path.abspath(__file__))


# read the version from sqlagg/__init__.py, which is `__version__ = "0.1.0"`
def get_version():
    init_file = os.path.join(script_dir, "sqlagg", "__init__.py")
    with open(init_file, "r") as f:
        init_content = f.read()
    match = re.search(r"^__version__ = \"(\d+\.\d+\.\d+)\"", init_content, re.MULTILINE)
    if match is None:
        raise RuntimeError("Failed to find __version__ in " + init_file)
    return match.group(1)


def get_long_description():
    readme = os.path.join(script_dir, "DESIGN.md")
    if not os.path.exists(readme):
        return ""
    with open(readme, "r", encoding="utf-8") as f:
        return f.read()


# this will be executed by pip install or python setup.py bdist_wheel
if __name__ == "__main__":
    try:
        versionStr = get_version()
        setup(
            name="sqlagg",
            version=versionStr,
            description="SQL aggregation and grouping engine over in-memory rows and pandas DataFrames",
            long_description=get_long_description(),
            long_description_content_type="text/markdown",
            packages=["sqlagg"],
            exclude_package_data={"": ["*.pyc", "tests/**"]},
            python_requires=">=3.8",
            install_requires=[
                "pandas>=2.0.0",
                "numpy>=1.24",
            ],
            extras_require={
                "test": ["pytest>=7.0"],
            },
            zip_safe=False,
        )
    except Exception as e:
        print("Build from setup.py failed. Error: ")
        print(e)
        raise
