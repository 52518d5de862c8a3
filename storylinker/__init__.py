"""
storylinker - narrative export to visual-novel bundle converter

Turns a flow-graph export, localization spreadsheets and a registry
spreadsheet into chaptered, localized bundles for the game runtime.

Modules:
- model: flow graph node types
- extract: Flow.json loading, role decoding, registry cross-reference
- hierarchy: chapter ordering and chapter/subchapter partitioning
- localization: table generation, SystemLinkTo aliasing, multi-language merge
- grid_linker: per-chapter asset deduplication
- atlas: sprite atlas completeness checks
- emotions: color tag to emotion classification
- registry: Meta.xlsx loading and validation
- bundle / pipeline: output folder generation
"""

__version__ = "1.0.0"
