from setuptools import setup, find_packages

setup(
    name="skyveil",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "requests",
        "dnspython",
        "backoff",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "skyveil = skyveil.cli:main",
        ],
    },
    python_requires=">=3.8",
    author="exfil0",
    description="Unauthenticated Azure subdomain and storage discovery toolkit",
    license="MIT",
    keywords="azure subdomain storage enumeration recon security",
    url="https://github.com/exfil0/SkyVeil",
)
