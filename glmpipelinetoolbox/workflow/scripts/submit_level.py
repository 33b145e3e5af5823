"""CLI entry point into submitting one analysis level to the cluster scheduler."""
import argparse
import sys

from glmpipelinetoolbox.workflow.common.cli_arguments import add_argument
from glmpipelinetoolbox.workflow.pipeline_driver import PipelineDriver
from glmpipelinetoolbox.standalone_utilities.log_formats import colorized_logger

logger = colorized_logger('glmpt workflow submit-level')


def main():
    parser = argparse.ArgumentParser(
        prog='glmpt workflow submit-level',
        description='Submit eligible units of one level in batch jobs.',
    )
    add_argument(parser, 'config file')
    add_argument(parser, 'level')
    add_argument(parser, 'model names')
    add_argument(parser, 'rerun')
    add_argument(parser, 'wait for')
    add_argument(parser, 'after level')
    args = parser.parse_args()

    driver = PipelineDriver.from_config_file(args.config_file)
    result = driver.run_level(
        args.level,
        model_names=args.model_names,
        rerun=args.rerun,
        wait_for=args.wait_for,
        after_level=args.after_level,
    )
    if result is None:
        sys.exit(1)
    for job_id in result.job_ids:
        print(job_id)
    if result.failed_batches:
        logger.error('%s batches were not submitted.', len(result.failed_batches))
        sys.exit(1)


if __name__ == '__main__':
    main()
