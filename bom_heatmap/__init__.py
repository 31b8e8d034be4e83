"""bom-heatmap: BOM CSV import, category rollups and supplier-rate heatmaps."""

__version__ = "0.1.0"
