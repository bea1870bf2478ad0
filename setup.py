from setuptools import setup, find_packages
setup(
  name = 'statsig_boundary',         # Package folder name
  packages = find_packages(exclude=['tests', 'tests.*']),
  version = '0.1.0',      # Keep in sync with statsig_boundary.__version__
  license='MIT',
  description = 'Error boundary, diagnostics markers and exception reporting for the Statsig client SDK',
  author = 'Statsig',
  keywords = ['Statsig', 'SDK', 'error boundary', 'diagnostics'],
  python_requires='>=3.9',
  install_requires=[
          'loguru>=0.6.0',
          'httpx>=0.24.0',
      ],
  extras_require={
          'test': ['pytest>=7.0'],
      },
  classifiers=[
    'Development Status :: 3 - Alpha',
    'Intended Audience :: Developers',
    'Topic :: Software Development :: Libraries',
    'License :: OSI Approved :: MIT License',
    'Programming Language :: Python :: 3',
    'Programming Language :: Python :: 3.9',
    'Programming Language :: Python :: 3.10',
    'Programming Language :: Python :: 3.11',
    'Programming Language :: Python :: 3.12',
  ],
)
