from setuptools import setup, find_packages

__version__ = "0.3.0"

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name='adaptivesampling',
    version=__version__,
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    license='Apache-2.0',
    description='Adaptive sampling of spatial fields with multi-output Gaussian processes',
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=['scikit-learn',
                      'scipy',
                      'numpy<2.0.0',
                      'scikit-image>=0.19',
                      'tensorflow-probability[tf]>=0.21.0',
                      'tensorflow>=2.13.0; platform_machine!="arm64"',
                      'tensorflow-aarch64>=2.13.0; platform_machine=="arm64"',
                      'tensorflow-macos>=2.13.0; platform_system=="Darwin" and platform_machine=="arm64"',
                      'gpflow>=2.7.0',
                      'pyswarms>=1.3.0',
                     ],
    extras_require={
        'test': ['pytest'],
    },
        classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ]
)
