#!/usr/bin/env python

"""Setup script for packaging celtree.

To release:
    Update /src/celtree/version.py, /CHANGES.rst

Run tests with:
    tox

To build a package for distribution:
    python setup.py sdist bdist_wheel

and upload it to the PyPI with:
    twine upload --verbose dist/*

to install a link for development work:
    pip install -e .

"""

from setuptools import find_packages, setup

# see StackOverflow/458550
exec(open('src/celtree/version.py').read())


# Create long description from README.rst and CHANGES.rst.
# PYPI page will contain complete changelog.
def changes():
    """get changes.rst and remove the keep-a-changelog header"""
    import itertools as it
    import re

    lines = tuple(open('CHANGES.rst', 'r', encoding='utf-8').readlines())
    first_change_re = re.compile(r'^\[\d')
    header = tuple(it.takewhile(lambda line: not first_change_re.match(line), lines))
    return lines[len(header):]


long_description = u'{}\n\nChange Log\n==========\n\n{}'.format(
    open('README.rst', 'r', encoding='utf-8').read(), ''.join(changes()))

with open('test-requirements.txt') as f:
    tests_require = f.readlines()


setup(
    name='celtree',
    version=__version__,  # noqa: F821
    packages=find_packages('src'),
    package_dir={'': 'src'},
    description='Build expression trees from excel formulas & render them '
                'in canonical forms for structural analysis',
    keywords='excel formula parser tree canonical',
    tests_require=tests_require,
    extras_require={'test': tests_require},
    install_requires=[
        'openpyxl>=3.1',
    ],
    python_requires='>=3.7',
    long_description=long_description,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
)
