# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import fifochannel

# -- Project information -----------------------------------------------------

project = 'fifochannel'
copyright = '2020-, Zepu Zhang'
author = 'Zepu Zhang'
version = str(fifochannel.__version__)

today_fmt = '%b %d %Y'

# -- General configuration ---------------------------------------------------

# See numpydoc documentation for a numpy-style docstring style guide.

extensions = [
    "numpydoc",
    'sphinx.ext.autodoc',
    'sphinx.ext.viewcode',
    ]

# Disable autosummary stuff, which is enabled by numpydoc by default.
numpydoc_show_class_members = False
numpydoc_show_inherited_class_members = False


autodoc_default_options = {
    'members': True,
    'undoc-members': True,
    'special-members': '__init__, __enter__, __exit__, __aenter__, __aexit__',
    'member-order': 'bysource',
    'show-inheritance': True,
}
autodoc_class_signature = 'separated'
autodoc_typehints = 'signature'

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']


# -- Options for HTML output -------------------------------------------------

# A single short page.
html_theme = 'pydata_sphinx_theme'
