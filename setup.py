from setuptools import setup


setup(
    name="bom-heatmap",
    version="0.1.0",
    description="Local BOM CSV import with category rollups and supplier-rate heatmaps",
    packages=["bom_heatmap"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "bom-heatmap=bom_heatmap.cli:main",
        ]
    },
)
