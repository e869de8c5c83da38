#!/usr/bin/env python
# -*- coding: utf-8 -*-
from setuptools import setup

with open('README.md', encoding='utf8') as readme_file:
    readme = readme_file.read()


setup(
    name='unifi-access',
    version='0.1.0',
    description="Async client for the UniFi Access developer API.",
    long_description=readme,
    long_description_content_type="text/markdown",
    packages=[
        'unifi_access',
        'unifi_access.config',
        'unifi_access.platform',
    ],
    package_dir={'unifi_access': 'unifi_access'},
    include_package_data=True,
    install_requires=[
        'httpx>=0.27',
        'pydantic>=2.5',
        'certifi',
        'truststore>=0.9',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.23',
        ],
    },
    python_requires=">=3.10",
    license="MIT license",
    zip_safe=False,
    keywords='unifi access nfc',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ]
)
