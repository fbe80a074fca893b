"""Core IR and segmentation modules.

WHY: The core package holds the stable heart of the pipeline, the IR
dataclasses and the logic that turns a flat word stream into paragraphs.
Every later stage consumes these types.

HOW: ir.py defines the data structures, sentences.py splits text into
sentences, segmenter.py builds speaker-tagged paragraphs from tokens.

RULES:
- IR dataclasses are the contract; change with care
- Segmentation is format-agnostic; no LaTeX or prompt logic here
"""
