#!/usr/bin/env python3
"""V2X-CPM - Setup Configuration"""

from setuptools import setup, find_packages
import os

def get_version():
    return '1.0.0'

def get_long_description():
    readme_file = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_file):
        with open(readme_file, 'r', encoding='utf-8') as f:
            return f.read()
    return ''

setup(
    name='v2x-cpm',
    version=get_version(),
    author='Dr. Mladen Mešter',
    author_email='mladen@nexellum.com',
    description='Collective Perception Message service for V2X ITS stations',
    long_description=get_long_description(),
    long_description_content_type='text/markdown',
    url='https://github.com/mladen1312/v2x-cpm',
    packages=find_packages(where='.', include=['v2x_cpm', 'v2x_cpm.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.21.0',
        'scipy>=1.7.0',
        'pyyaml>=6.0',
    ],
    extras_require={
        'dev': ['pytest>=7.0.0', 'pytest-cov>=4.0.0', 'black>=23.0.0', 'flake8>=6.0.0'],
    },
    entry_points={
        'console_scripts': ['v2x-cpm-demo=v2x_cpm.__main__:main'],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'License :: OSI Approved :: GNU Affero General Public License v3',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
    keywords=['v2x', 'its', 'cpm', 'collective-perception', 'etsi', 'utm', 'mgrs'],
)
