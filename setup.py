from setuptools import setup, find_packages


install_requires = [
    'PyYAML>=3.0',
    'jsonschema>=4',
    'werkzeug<4',
    'jinja2',
    'requests',
    'redis>=4',
]

tests_require = [
    'pytest',
    'WebTest',
]


def long_description(changelog_releases=10):
    import re

    readme = open('README.md').read()
    changes = ['\nChanges\n-------\n']
    version_line_re = re.compile(r'^\d\.\d+\.\d+\S*\s20\d\d-\d\d-\d\d')
    for line in open('CHANGES.txt'):
        if version_line_re.match(line):
            if changelog_releases == 0:
                break
            changelog_releases -= 1
        changes.append(line)

    return readme + ''.join(changes)


setup(
    name='TileControl',
    version="0.1.0",
    description='Named map templates, request authorization and cache control for map tile servers',
    long_description=long_description(7),
    long_description_content_type='text/markdown',
    author='Omniscale',
    author_email='info@omniscale.de',
    license='Apache Software License 2.0',
    packages=find_packages(),
    include_package_data=True,
    entry_points={
        'console_scripts': [
            'tilecontrol-util = tilecontrol.script.util:main',
        ],
    },
    package_data={'': ['*.yaml', '*.wsgi', '*.ini', '*.json']},
    install_requires=install_requires,
    extras_require={
        'test': tests_require,
    },
    python_requires='>=3.9',
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Internet :: WWW/HTTP :: WSGI",
        "Topic :: Scientific/Engineering :: GIS",
    ],
    zip_safe=False
)
