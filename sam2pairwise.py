#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from argparse import ArgumentParser
from warnings import warn
from pathlib import Path
import sys

from pairwise import utils
from pairwise import driver
from pairwise.PairwiseClasses import HighlightConfig
from pairwise.render import FORMATTERS, get_formatter

EXIT_INTERRUPTED = 130


def build_parser():
    ### DEFINE PROGRAM ARGS
    default_mark='.'
    default_intron_threshold=20

    parser = ArgumentParser(
        prog=Path(__file__).name.split(sep='.')[0],
        description="Converts SAM records into a three-line pairwise alignment (read, markers, reference), "
                    "rebuilding the reference from the CIGAR string and the MD tag.",
        epilog="With -m REF>ALT the expected substitution is not highlighted and is marked with -l; "
               "other mismatches, and matches at REF bases, are highlighted. "
               "Without -m, every mismatch is highlighted.",
    )
    parser.add_argument('-i', '--input', help='Path to a SAM file (optionally gzipped). Defaults to stdin.', type=str, default='-')
    parser.add_argument('-m', '--mutation', help='Known mutation that changes highlighting, written REF>ALT (eg. C>T).', type=str, default='')
    parser.add_argument('-l', '--mark', help=f'Single character used to mark the known mutation. Defaults to \'{default_mark}\'.', type=str, default=default_mark)
    parser.add_argument('-f', '--forward', help='Only keep Read 1 forward / Read 2 reverse reads (and unpaired forward reads).', action='store_true')
    parser.add_argument('-r', '--reverse', help='Only keep Read 1 reverse / Read 2 forward reads (and unpaired reverse reads).', action='store_true')
    parser.add_argument('-t', '--tag', help='SAM tag to show in the info line. Can be repeated. Defaults to MD.', action='append', dest='tags')
    parser.add_argument('-q', '--quality_cutoff', help='Phred score below which read bases are shown in the low-quality colour. Defaults to 0 (disabled).', type=int, default=0)
    parser.add_argument('-o', '--format', help='Output format. Defaults to \'terminal\'.', choices=list(FORMATTERS), default='terminal')
    parser.add_argument('-c', '--color', help='When to use colour in terminal output. Defaults to \'auto\'.', choices=['auto', 'always', 'never'], default='auto')
    parser.add_argument('-n', '--intron_threshold', help=f'N runs longer than this are condensed. Defaults to {default_intron_threshold}.', type=int, default=default_intron_threshold)
    parser.add_argument('-j', '--threads', help='Number of worker processes. Defaults to 1.', type=int, default=1)
    parser.add_argument('-s', '--summary', help='Write per-record match/mismatch counts to this TSV file.', type=str)
    parser.add_argument('-P', '--progress', help='Show a progress bar on stderr.', action='store_true')
    parser.add_argument('--quiet', help='Do not print the banner, arguments or run summary.', action='store_true')
    return parser

def check_args(args, parser_defaults: dict):
    '''
    Raises ValueError for unusable arguments and warns about ones that will have no effect.
    '''
    ### ERRORS
    if len(args.mark) != 1:
        error_message=f'''
        {utils.RED}ERROR:{utils.RESET} --mark must be a single character.
        \t--mark={args.mark}
        '''
        raise ValueError(error_message)

    if args.mutation and (len(args.mutation) != 3 or args.mutation[1] != '>'):
        error_message=f'''
        {utils.RED}ERROR:{utils.RESET} --mutation format must be REF>ALT (eg. C>T).
        \t--mutation={args.mutation}
        '''
        raise ValueError(error_message)

    if args.forward and args.reverse:
        error_message=f'''
        {utils.RED}ERROR:{utils.RESET} Cannot use --forward and --reverse simultaneously.
        '''
        raise ValueError(error_message)

    for name in ['quality_cutoff', 'intron_threshold']:
        if getattr(args, name) < 0:
            error_message=f'''
            {utils.RED}ERROR:{utils.RESET} --{name} cannot be negative.
            \t--{name}={getattr(args, name)}
            '''
            raise ValueError(error_message)

    if args.threads < 1:
        error_message=f'''
        {utils.RED}ERROR:{utils.RESET} --threads must be at least 1.
        \t--threads={args.threads}
        '''
        raise ValueError(error_message)

    ### WARNINGS
    # These params don't *hurt*, but they do nothing in the current combination
    warnings = []
    if not args.mutation and args.mark != parser_defaults['mark']:
        warnings.append(
            utils.warning_template.format(
                name='mark', default=parser_defaults['mark'], current=args.mark, condition='together with --mutation', RED=utils.RED, RESET=utils.RESET
            )
        )
    if args.format != 'terminal' and args.color != parser_defaults['color']:
        warnings.append(
            utils.warning_template.format(
                name='color', default=parser_defaults['color'], current=args.color, condition='with --format terminal', RED=utils.RED, RESET=utils.RESET
            )
        )
    if warnings:
        warn("".join(warnings))

def make_highlight_config(args):
    return HighlightConfig.from_mutation_string(
        args.mutation,
        mark_char=args.mark,
        quality_cutoff=args.quality_cutoff if args.quality_cutoff > 0 else None,
        intron_threshold=args.intron_threshold,
    )

def make_formatter(args):
    if args.format != 'terminal':
        return get_formatter(args.format)
    force_color = True if args.color == 'always' else None
    no_color = True if args.color == 'never' else None
    return get_formatter('terminal', force_color=force_color, no_color=no_color)

def main(argv=None):
    ### PARSE USER ARGS
    parser = build_parser()
    args = parser.parse_args(argv)
    parser_defaults = {name: parser.get_default(name) for name in ['mark', 'color']}
    if not args.tags:
        args.tags = ['MD']

    ### CHECK INPUTS
    check_args(args, parser_defaults)

    ### ONCE ALL ARGS ARE VALID AND THE USER IS WARNED, PRINT USER INFO AND CONVERT
    if not args.quiet:
        utils.print_logo()
        utils.print_args(args)

    settings = driver.ConversionSettings(
        highlight=make_highlight_config(args),
        formatter=make_formatter(args),
        tag_keys=args.tags,
        forward=args.forward,
        reverse=args.reverse,
    )

    handle = utils.open_samfile(args.input)
    try:
        run_summary = driver.process_sam_stream(handle, settings, threads=args.threads, progress=args.progress)
    finally:
        if handle is not sys.stdin:
            handle.close()

    df_summary = utils.make_summary_df(run_summary.summary_rows)
    if args.summary:
        df_summary.to_csv(args.summary, sep = "\t", index=False)
        if not args.quiet:
            utils.print_user_info(f'Wrote per-record counts to {utils.BRIGHT_CYAN}{args.summary}{utils.RESET}')
    if not args.quiet:
        utils.print_conversion_summary(df_summary, run_summary.num_failed)

    if run_summary.interrupted:
        return EXIT_INTERRUPTED
    return 0

if __name__ == "__main__":
    sys.exit(main())
