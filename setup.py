import gameinfo
import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    longDescription = fh.read()

setuptools.setup(
    name='gameinfo',
    version=gameinfo.__version__,
    description='Inspect, extract and modify the files of classic DOS games',
    long_description=longDescription,
    long_description_content_type="text/markdown",
    author=gameinfo.__author__,
    license='GNU General Public License v3.0',
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "chardet",
        "numpy",
        "Pillow",
        "sortedcontainers",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["gameinfo=gameinfo.__main__:main"],
    },

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'Programming Language :: Python :: 3.10',
        'License :: OSI Approved :: GNU General Public License v3 (GPLv3)',
        'Operating System :: OS Independent'
    ],
    python_requires='>=3.10',
)
