######################################################################
#
# File: noxfile.py
#
# Copyright 2020 Backblaze Inc. All Rights Reserved.
#
# License https://www.backblaze.com/using_b2_code.html
#
######################################################################
from __future__ import annotations

import os

import nox

CI = 'CI' in os.environ

# comma separated, e.g. NOX_PYTHONS=3.9,3.12
PYTHON_VERSIONS = os.environ.get('NOX_PYTHONS', '3.8,3.9,3.10,3.11,3.12').split(',')
PYTHON_DEFAULT_VERSION = PYTHON_VERSIONS[-1]
WITH_COVERAGE = os.environ.get('SKIP_COVERAGE') != 'true'

SOURCES = ['b2client', 'test', 'noxfile.py']

FORMATTERS = ['yapf==0.27', 'ruff==0.0.270']
COVERAGE_PLUGINS = ['pytest-cov==3.0.0', 'pytest-xdist==2.5.0']

nox.options.reuse_existing_virtualenvs = True
nox.options.sessions = ['lint', 'unit']

if CI:
    # the interpreters are installed by the CI job
    nox.options.force_venv_backend = 'none'


def _install_package(session, *extras):
    target = f'.[{",".join(extras)}]' if extras else '.'
    session.run('pip', 'install', '-e', target)


@nox.session(name='format', python=PYTHON_DEFAULT_VERSION)
def format_(session):
    """Reformat the sources and fix what ruff can fix."""
    session.run('pip', 'install', *FORMATTERS)
    session.run('yapf', '--in-place', '--parallel', '--recursive', *SOURCES)
    session.run('ruff', 'check', '--fix', *SOURCES)


@nox.session(python=PYTHON_DEFAULT_VERSION)
def lint(session):
    """Check formatting and lint without changing anything."""
    _install_package(session, 'test')
    session.run('pip', 'install', *FORMATTERS)
    session.run('yapf', '--diff', '--parallel', '--recursive', *SOURCES)
    session.run('ruff', 'check', *SOURCES)


@nox.session(python=PYTHON_VERSIONS)
def unit(session):
    """Run the unit tests, with a coverage report unless SKIP_COVERAGE=true."""
    _install_package(session, 'test')
    pytest_args = list(session.posargs)
    if WITH_COVERAGE:
        session.run('pip', 'install', *COVERAGE_PLUGINS)
        pytest_args = ['-n', 'auto', '--cov=b2client', '--cov-branch', *pytest_args]
    session.run('pytest', *pytest_args, 'test/unit')


@nox.session(python=PYTHON_DEFAULT_VERSION)
def build(session):
    """Build the sdist and the wheel into dist/."""
    session.run('pip', 'install', 'build>=1.0')
    session.run('rm', '-rf', 'build', 'dist', 'b2client.egg-info', external=True)
    session.run('python', '-m', 'build', *session.posargs)
