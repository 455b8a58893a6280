from setuptools import setup, find_packages

setup(
    name             = 'imessage-watcher',
    version          = '2.0.0',
    description      = 'iMessage Watcher — local-LLM commitments from one contact into Calendar and Reminders',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest', 'httpx'],
    },
    entry_points     = {
        'console_scripts': [
            'watcher     = watcher.cli:main',
            'watcher-api = watcher.api:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'Operating System :: MacOS',
    ],
)
