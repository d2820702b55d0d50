# flowsim documentation build configuration file.
#
# This file is execfile()d with the current directory set to its
# containing dir.

import os
import sys

sys.path.insert(0, os.path.abspath('..'))

# -- General configuration ------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.doctest',
    'sphinx.ext.intersphinx',
    'sphinx.ext.todo',
    'sphinx.ext.viewcode',
]

autodoc_member_order = 'bysource'

templates_path = ['_templates']

source_suffix = '.rst'

master_doc = 'index'

project = 'flowsim'
author = 'flowsim developers'

version = '0.1.0'
release = version

exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

pygments_style = 'sphinx'

todo_include_todos = True

# -- Options for HTML output ----------------------------------------------

html_theme = 'sphinx_rtd_theme'

html_static_path = ['_static']

htmlhelp_basename = 'flowsimdoc'

# -- Options for LaTeX output ---------------------------------------------

latex_elements = {}

latex_documents = [
    (master_doc, 'flowsim.tex', 'flowsim Documentation', author, 'manual'),
]

# -- Options for manual page output ---------------------------------------

man_pages = [(master_doc, 'flowsim', 'flowsim Documentation', [author], 1)]

# -- Options for Texinfo output -------------------------------------------

texinfo_documents = [
    (
        master_doc,
        'flowsim',
        'flowsim Documentation',
        author,
        'flowsim',
        'Discrete event simulation of process flow models',
        'Miscellaneous',
    ),
]

intersphinx_mapping = {
    'python': ('https://docs.python.org/3/', None),
}
