from setuptools import setup


setup(
    name="uniconvert",
    version="0.1.0",
    description="Manual grade entry with curriculum code validation, AI code matching and Excel export",
    packages=["uniconvert"],
    python_requires=">=3.10",
    install_requires=[
        "pandas",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "test": ["pytest"],
    },
)
