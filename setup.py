#!/usr/bin/env python
import re

from setuptools import find_packages, setup

with open("filmgraph/__init__.py", "r") as f:
    VERSION = ".".join(re.search(r"VERSION = \((.*)\)", f.read()).group(1).split(", "))

INSTALL_REQUIREMENTS = [
    "Django>=5.1",
    "celery[redis]>=5.3",
    "django-celery-beat",
    "django-redis",
    "django-structlog",
    "structlog",
    "sentry-sdk",
    "prometheus-client",
    "django-ninja>=1.0,<1.5",
    "setuptools-scm",
    "requests",
    "beautifulsoup4",
    "psycopg[binary]",
]
TEST_REQUIREMENTS = ["pytest", "pytest-django"]
SCRIPTS = ["manage.py"]
DESCRIPTION = "Movie catalog importer"
CLASSIFIERS = """\
Environment :: Web Environment
Framework :: Django
Programming Language :: Python
Programming Language :: Python :: 3.11
""".splitlines()

with open("README.md", "r") as f:
    LONG_DESCRIPTION = f.read()


setup(
    name="filmgraph",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    include_package_data=True,
    scripts=SCRIPTS,
    install_requires=INSTALL_REQUIREMENTS,
    extras_require={"test": TEST_REQUIREMENTS},
    python_requires=">=3.11",
    classifiers=CLASSIFIERS,
    use_scm_version={
        "write_to": "version.txt",
        "tag_regex": r"^(?P<prefix>v)?(?P<version>[^\+]+)(?P<suffix>.*)?$",
        "fallback_version": VERSION,
    },
    setup_requires=["setuptools_scm"],
)
