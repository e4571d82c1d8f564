import functools

from setuptools_scm import get_version


@functools.lru_cache(maxsize=None)
def get_filmgraph_version():
    # Installed copies and source trees without git history fall back to the
    # package version
    from filmgraph import get_version as get_package_version

    return get_version(fallback_version=get_package_version())
