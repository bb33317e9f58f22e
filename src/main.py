'''Common entry point of the command line tools.'''

import sys

def main(parser, logging, CoDec, argv=None):
    '''Parse the arguments, run the selected action of CoDec and say bye.'''
    args = parser.parse_args(argv)
    if args.debug:
        FORMAT = "[%(filename)s:%(lineno)s %(levelname)s %(funcName)s()] %(message)s"
        logging.basicConfig(format=FORMAT, level=logging.DEBUG)
    else:
        FORMAT = "(%(levelname)s) %(module)s: %(message)s"
        logging.basicConfig(format=FORMAT, level=logging.INFO)

    if getattr(args, "func", None) is None:
        parser.print_help()
        return 1

    logging.debug(f"args = {args}")
    codec = CoDec(args)
    try:
        args.func(codec)
    except (IOError, ValueError) as e:
        logging.error(f"{args.subparser_name} aborted: {e}")
        return 1
    finally:
        codec.bye()
    return 0

if __name__ == "__main__":
    sys.exit("Run one of the tools (for example: python BMC.py -h)")
