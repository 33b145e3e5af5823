import setuptools
from os.path import join, dirname

def get_file_contents(filename):
    package_directory = dirname(__file__)
    with open(join(package_directory, filename), 'r', encoding='utf-8') as file:
        contents = file.read()
    return contents

long_description = """Orchestration of multi-level (run, subject, group) GLM analyses of
functional imaging cohorts on Slurm or Torque clusters, with FSL FEAT as the estimation tool.
"""
version = get_file_contents(join('glmpipelinetoolbox', 'version.txt')).strip()

setuptools.setup(
    name='glmpipelinetoolbox',
    version=version,
    description='Setup, batch submission, and completion tracking for multi-level GLM pipelines.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=[
        'glmpipelinetoolbox',
        'glmpipelinetoolbox.entry_point',
        'glmpipelinetoolbox.db',
        'glmpipelinetoolbox.standalone_utilities',
        'glmpipelinetoolbox.workflow',
        'glmpipelinetoolbox.workflow.common',
        'glmpipelinetoolbox.workflow.component_interfaces',
        'glmpipelinetoolbox.workflow.fsl',
        'glmpipelinetoolbox.workflow.fsl.templates',
        'glmpipelinetoolbox.workflow.scheduling',
        'glmpipelinetoolbox.workflow.scheduling.templates',
        'glmpipelinetoolbox.workflow.scheduling.assets',
        'glmpipelinetoolbox.workflow.scripts',
    ],
    classifiers=[
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering',
        'Intended Audience :: Science/Research',
    ],
    package_data={
        'glmpipelinetoolbox': [
            'version.txt',
        ],
        'glmpipelinetoolbox.workflow.fsl.templates': [
            'feat_lvl1_template.fsf',
            'feat_lvl2_template.fsf',
            'feat_lvl3_template.fsf',
        ],
        'glmpipelinetoolbox.workflow.scheduling.templates': [
            'batch_script.sh.jinja',
        ],
        'glmpipelinetoolbox.workflow.scheduling.assets': [
            'gen_feat_reg_dir.sh',
        ],
        'glmpipelinetoolbox.workflow.scripts': [
            'setup_level.py',
            'submit_level.py',
            'report_status.py',
        ],
    },
    python_requires='>=3.10',
    entry_points={
        'console_scripts' : [
            'glmpt = glmpipelinetoolbox.entry_point.cli:main_program',
        ]
    },
    install_requires=[
        'attrs>=22.2.0',
        'Jinja2>=3.0.1',
        'pandas>=1.1.5',
        'pytz',
    ],
    extras_require={
        'postgres': ['psycopg[binary]>=3.1'],
        'test': ['pytest>=7.0'],
        'all': ['psycopg[binary]>=3.1', 'pytest>=7.0'],
    },
)
