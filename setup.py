from setuptools import find_packages, setup

setup(
    name="remote-lsf",
    version="0.1.0",
    description="List local, FTP, SFTP or Google Drive directories in a script-friendly format",
    author="Daniel T Sasser II",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "cachetools>=5.0.0",
        "paramiko>=3.0.0",
        "google-api-python-client>=2.100.0",
        "google-auth>=2.20.0",
        "google-auth-oauthlib>=1.0.0",
    ],
    entry_points={
        "console_scripts": [
            "remote-lsf=remote_lsf.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "pyftpdlib",
            "build",
            "twine",
        ],
    },
)
