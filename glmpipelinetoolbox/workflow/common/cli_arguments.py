"""CLI arguments solicitation."""
from typing import Literal
from argparse import ArgumentParser

ArgumentName = Literal['config file', 'level', 'model names', 'force', 'rerun', 'wait for',
                       'after level', 'output file']


def add_argument(parser: ArgumentParser, name: ArgumentName):
    if name == 'config file':
        parser.add_argument('--config-file', dest='config_file', type=str, required=True,
                            help='The pipeline configuration file (INI format).')
    if name == 'level':
        parser.add_argument('--level', dest='level', type=int, choices=[1, 2, 3], required=True,
                            help='Analysis level: 1 (run), 2 (subject), or 3 (group).')
    if name == 'model names':
        parser.add_argument('--model', dest='model_names', type=str, action='append', default=None,
                            help='Restrict to this model of the chosen level. May be repeated.')
    if name == 'force':
        parser.add_argument('--force', dest='force', action='store_true',
                            help='Rewrite configuration files that already exist.')
    if name == 'rerun':
        parser.add_argument('--rerun', dest='rerun', action='store_true',
                            help='Remove and resubmit outputs that already completed.')
    if name == 'wait for':
        parser.add_argument('--wait-for', dest='wait_for', type=str, action='append', default=None,
                            help='A scheduler job id that must finish successfully first. May be repeated.')
    if name == 'after level':
        parser.add_argument('--after-level', dest='after_level', type=int, choices=[1, 2, 3],
                            default=None,
                            help='Wait for every job in the submission manifest of this level.')
    if name == 'output file':
        parser.add_argument('--output-file', dest='output_file', type=str, required=False,
                            help='Also write the report to this tab-separated file.')
