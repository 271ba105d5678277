import codecs

import setuptools


def long_description():
    with codecs.open("README.md", encoding="utf8") as f:
        return f.read()


setuptools.setup(
    name="Jetway",
    version="0.1.0",
    description="An HTTP to Gemini Gateway",
    install_requires=[
        "twisted>=22.4.0",
        # Requirements below are used by twisted[tls]
        "service_identity",
        "idna",
        "pyopenssl",
        "cryptography>=42.0.0",
        "zope.interface",
    ],
    extras_require={
        "test": ["pytest"],
    },
    long_description=long_description(),
    long_description_content_type="text/markdown",
    packages=["jetway"],
    py_modules=["jetway_client"],
    entry_points={
        "console_scripts": [
            "jetway=jetway.__main__:main",
            "jetway-fetch=jetway_client:run_client",
        ]
    },
    python_requires=">=3.8",
    keywords="gemini http gateway proxy twisted",
    classifiers=[
        "Environment :: Web Environment",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Topic :: Internet :: Proxy Servers",
    ],
)
