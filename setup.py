# see https://github.com/karlicoss/pymplate for up-to-date reference


from setuptools import setup, find_namespace_packages  # type: ignore


def main() -> None:
    # works with both ordinary and namespace packages
    pkgs = find_namespace_packages('src')
    pkg = min(pkgs) # lexicographically smallest is the correct one usually?
    setup(
        name=pkg,
        version='1.0.0',
        python_requires='>=3.11',

        # otherwise mypy won't work
        # https://mypy.readthedocs.io/en/stable/installed_packages.html#making-pep-561-compatible-packages
        zip_safe=False,

        packages=pkgs,
        package_dir={'': 'src'},
        # necessary so that package works with mypy
        package_data={pkg: ['py.typed']},

        install_requires=[
            'click'         ,  # CLI
            'prompt_toolkit',  # CLI
            'tabulate'      ,  # for listing timers
            'termcolor'     ,  # for listing timers

            'loguru'        ,  # nicer logging
        ],
        extras_require={
            'testing': ['pytest'],
            'linting': ['pytest', 'mypy', 'lxml'], # lxml for mypy coverage report
        },

        entry_points={'console_scripts': ['cronie = cronie.cli:main']},

        description='Friendly interactive manager for systemd timers',
    )


if __name__ == '__main__':
    main()
