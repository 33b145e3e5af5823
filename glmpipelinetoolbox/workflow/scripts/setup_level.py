"""CLI entry point into writing the configuration files for one analysis level."""
import argparse
import sys

from glmpipelinetoolbox.workflow.common.cli_arguments import add_argument
from glmpipelinetoolbox.workflow.pipeline_driver import PipelineDriver
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger('glmpt workflow setup-level')


def main():
    parser = argparse.ArgumentParser(
        prog='glmpt workflow setup-level',
        description='Resolve designs and write estimation-tool configuration files for one level.',
    )
    add_argument(parser, 'config file')
    add_argument(parser, 'level')
    add_argument(parser, 'model names')
    add_argument(parser, 'force')
    args = parser.parse_args()

    driver = PipelineDriver.from_config_file(args.config_file)
    result = driver.setup_level(args.level, model_names=args.model_names, force=args.force)
    if result is None:
        sys.exit(1)
    logger.info('Set up %s level %s units (%s errors).', len(result.artifacts), args.level, len(result.errors))


if __name__ == '__main__':
    main()
