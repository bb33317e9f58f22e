'''Parsing of the command line arguments.'''
import argparse
import sys

def interpolate(codec):
    return codec.interpolate()

def evaluate(codec):
    return codec.evaluate()

class CustomArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, None)
        sys.exit(status)

def create_parser(description=None):
    '''Main parser with one sub-parser per action ("interpolate" or "evaluate").'''
    parser = CustomArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                  description=description)
    parser.add_argument("-g", "--debug", action="store_true", help="Output debug information")
    subparser = parser.add_subparsers(help="You must specify one of the following subcomands:", dest="subparser_name")
    parser_interpolate = subparser.add_parser("interpolate", help="Synthesize the skipped frames of a video",
                                              formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser_evaluate = subparser.add_parser("evaluate", help="Compare interpolated frames with the originals",
                                           formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    parser_interpolate.set_defaults(func=interpolate)
    parser_evaluate.set_defaults(func=evaluate)
    return parser, parser_interpolate, parser_evaluate

parser, parser_interpolate, parser_evaluate = create_parser()
