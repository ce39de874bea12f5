# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Path setup --------------------------------------------------------------
import os
import sys
sys.path.insert(0, os.path.abspath('../../src'))
# spiceypy is only used by the cross-check tests
autodoc_mock_imports = ['spiceypy']

# -- Project information -----------------------------------------------------

project = 'Polos'
copyright = '2026, Polos developers'
author = 'Polos developers'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',      # API pages from docstrings
    'sphinx.ext.napoleon',     # NumPy-style docstrings
    'sphinx.ext.autosummary',
    'sphinx.ext.mathjax',      # rotation and interpolation formulas
    'sphinx.ext.viewcode',
    'myst_parser',             # Markdown pages (DESIGN.md)
]

autosummary_generate = True
templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
html_static_path = ['_static']
