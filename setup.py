# encoding: utf-8
from setuptools import setup


setup(
    name='flowsim',
    version='0.1.0',
    description='Discrete event simulation of process flow models',
    long_description=open('flowsim/__init__.py').read().split('"""')[1],
    license='MIT',
    python_requires='>=3.7',
    install_requires=['pyvcd', 'PyYAML'],
    extras_require={
        'progress': ['progressbar2'],
        'test': ['pytest'],
    },
    packages=['flowsim'],
    include_package_data=True,
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: Implementation :: CPython',
        'Topic :: Scientific/Engineering',
    ],
)
