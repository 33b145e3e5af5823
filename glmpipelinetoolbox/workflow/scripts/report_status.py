"""CLI entry point into reporting the status of each unit of one analysis level."""
import argparse
import sys

from glmpipelinetoolbox.workflow.common.cli_arguments import add_argument
from glmpipelinetoolbox.workflow.pipeline_driver import PipelineDriver


def main():
    parser = argparse.ArgumentParser(
        prog='glmpt workflow report-status',
        description='Print the status of each unit of one level.',
    )
    add_argument(parser, 'config file')
    add_argument(parser, 'level')
    add_argument(parser, 'model names')
    add_argument(parser, 'output file')
    args = parser.parse_args()

    driver = PipelineDriver.from_config_file(args.config_file)
    report = driver.report_status(args.level, model_names=args.model_names)
    if report is None:
        sys.exit(1)
    print(report.to_string(index=False))
    print('')
    print(report['status'].value_counts().to_string())
    if args.output_file:
        report.to_csv(args.output_file, sep='\t', index=False)


if __name__ == '__main__':
    main()
