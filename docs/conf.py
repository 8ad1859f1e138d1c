# Configuration file for the Sphinx documentation builder.

# -- Project information -----------------------------------------------------
project = 'Popopt'
copyright = '2025 System76, Inc.'
author = 'System76, Inc.'

# -- General configuration ---------------------------------------------------
extensions = [
    'myst_parser',
    'sphinx_copybutton',
]

myst_enable_extensions = [
    "colon_fence",
    "deflist",
]

source_suffix = {
    '.rst': 'restructuredtext',
    '.md': 'markdown',
}

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

# -- Options for HTML output -------------------------------------------------
html_theme = 'alabaster'
html_title = 'Popopt Documentation'
