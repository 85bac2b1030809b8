import re
from pathlib import Path

from setuptools import setup

install_requires = [
    "httpx>=0.24,<1.0",
    "multidict>=4.5,<7.0",
    "yarl>=1.9,<2.0",
]

extras_require = {
    "test": [
        "pytest>=7.0",
    ],
}


def read(*parts):
    return Path(__file__).resolve().parent.joinpath(*parts).read_text().strip()


def read_version():
    regexp = re.compile(r"^__version__\W*=\W*\"([\d.abrc]+)\"")
    for line in read("http_message", "__init__.py").splitlines():
        match = regexp.match(line)
        if match is not None:
            return match.group(1)
    else:
        raise RuntimeError("Cannot find version in http_message/__init__.py")


with open("README.md", "r") as fh:
    long_description = fh.read()


setup(
    name="http-message",
    version=read_version(),
    description="Immutable HTTP messages, server request reconstruction and a synchronous client",
    long_description=long_description,
    long_description_content_type="text/markdown",
    platforms=["macOS", "POSIX", "Windows"],
    python_requires=">=3.11",
    project_urls={},
    license="MIT",
    packages=["http_message"],
    package_dir={"http_message": "./http_message"},
    package_data={"http_message": ["py.typed"]},
    install_requires=install_requires,
    extras_require=extras_require,
    include_package_data=True,
)
