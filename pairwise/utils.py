#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from termcolor import cprint
import sys
import gzip
from mimetypes import guess_type
from functools import partial
import pandas as pd

from pairwise.PairwiseClasses import SamRecord, MalformedSamRecord

BRIGHT_CYAN = '\033[96m'
RED = '\033[91m'
RESET = '\033[0m' # called to return to standard terminal text color

SAM_MIN_FIELDS = 11
FLAG_PAIRED = 0x1
FLAG_REVERSE = 0x10
FLAG_READ1 = 0x40
FLAG_READ2 = 0x80

SUMMARY_COLUMNS = ['qname', 'matches', 'mismatches', 'insertions', 'deletions', 'soft_clipped', 'low_quality']


warning_template = """
    {RED}WARNING:{RESET} --{name} set by user to non-default value
    \tDefault: --{name}={default}
    \tCurrent: --{name}={current}
    --{name} only has an effect {condition}.
    {RED}This does not affect your results{RESET}, but the argument is useless.
    It is recommended that you remove it.
    """

def print_user_info(message: str, bold: bool=True):
    '''
    Formats user-important strings as boldface magenta, and writes them to stderr.
    Writing to stderr keeps them out of the alignment output on stdout.
    '''
    if bold:
        cprint(message, "light_magenta", attrs=["bold"], file=sys.stderr)
    else:
        cprint(message, "light_magenta", file=sys.stderr)

def print_record_error(message: str):
    '''Reports a skipped record without stopping the run.'''
    cprint(message, "red", file=sys.stderr)

def print_interrupt_notice():
    cprint('\nSignal received. Finishing current record and exiting.', "yellow", attrs=["bold"], file=sys.stderr)

def print_logo():
    '''
    Prints the program banner to stderr.
    '''
    cprint('                   ___            _          _         ', "light_magenta", attrs=["bold"], file=sys.stderr)
    cprint('   ___ __ _ _ __  |_  )_ __  __ _(_)_ ___ __ _(_)___ ___ ', "light_magenta", attrs=["bold"], file=sys.stderr)
    cprint('  (_-</ _` | \'  \\  / /| \'_ \\/ _` | | \'_\\ V  V / (_-</ -_)', "light_magenta", attrs=["bold"], file=sys.stderr)
    cprint('  /__/\\__,_|_|_|_|/___| .__/\\__,_|_|_|  \\_/\\_/|_/__/\\___|', "light_magenta", attrs=["bold"], file=sys.stderr)
    cprint('                      |_|                                ', "light_magenta", attrs=["bold"], file=sys.stderr)

def print_args(args):
    '''
    Prints user-defined arguments to stderr.
    '''
    BOLD='\033[1m'
    RESET='\033[0m'
    print_user_info('User-defined arguments:')
    for key, value in vars(args).items():
        print(f"{BOLD}\t{key}{RESET}: {value}", file=sys.stderr)

def open_samfile(filepath):
    '''
    Opens a SAM file for reading, compressed or not. `None` or '-' means stdin.
    '''
    if filepath is None or filepath == '-':
        return sys.stdin
    encoding = guess_type(str(filepath))[1]
    _open = partial(gzip.open, mode = 'rt') if encoding == 'gzip' else open
    return _open(filepath)

def parse_sam_line(line: str):
    '''
    Splits a SAM line into a SamRecord.
    Returns None for header ('@') and blank lines; raises MalformedSamRecord when fewer than 11 fields are present.
    '''
    line = line.rstrip('\r\n')
    if not line or line.startswith('@'):
        return None
    fields = line.split()
    if len(fields) < SAM_MIN_FIELDS:
        raise MalformedSamRecord(f'Skipping invalid SAM record (less than {SAM_MIN_FIELDS} fields): {line}')
    return SamRecord(
        qname=fields[0],
        flag=fields[1],
        rname=fields[2],
        pos=fields[3],
        cigar=fields[5],
        seq=fields[9],
        qual=fields[10],
        tags=fields[11:],
    )

def passes_strand_filter(flag: str, forward: bool=False, reverse: bool=False):
    '''
    `forward` keeps unpaired forward reads, R1 forward and R2 reverse.
    `reverse` keeps unpaired reverse reads, R1 reverse and R2 forward.
    With neither set, everything passes.
    '''
    if not (forward or reverse):
        return True
    if forward and reverse:
        raise ValueError("Cannot filter for forward and reverse reads at the same time.")
    try:
        flag = int(flag)
    except ValueError:
        raise MalformedSamRecord(f'Skipping invalid SAM record (invalid flag {flag})') from None

    is_paired = bool(flag & FLAG_PAIRED)
    is_read1 = bool(flag & FLAG_READ1)
    is_read2 = bool(flag & FLAG_READ2)
    is_reverse = bool(flag & FLAG_REVERSE)

    if not is_paired:
        return is_reverse if reverse else not is_reverse
    if forward:
        return (is_read1 and not is_reverse) or (is_read2 and is_reverse)
    return (is_read1 and is_reverse) or (is_read2 and not is_reverse)

def make_summary_df(summary_rows: list):
    '''
    Converts per-record (qname, counts) pairs into a data frame, one row per converted record.
    '''
    data = []
    for qname, counts in summary_rows:
        row = {'qname': qname}
        row.update(counts)
        data.append(row)
    df = pd.DataFrame(data, columns=SUMMARY_COLUMNS)
    return(df)

def print_conversion_summary(df: pd.DataFrame, num_skipped: int = 0):
    '''
    Prints totals for a run to stderr.

    Parameters
    ----------
    df : pd.DataFrame
        Output of `make_summary_df`.
    num_skipped : int
        Number of records that could not be converted.

    Returns
    -------
    None
    '''
    num_converted = len(df)
    total = num_converted + num_skipped
    aligned = int(df['matches'].sum() + df['mismatches'].sum()) if num_converted else 0
    mismatches = int(df['mismatches'].sum()) if num_converted else 0
    percent_converted = 100 * num_converted / total if total else 0.0
    percent_mismatch = 100 * mismatches / aligned if aligned else 0.0
    print_user_info(
        f"{num_converted:,}/{total:,} ({percent_converted:.2f}%) records converted; "
        f"{mismatches:,}/{aligned:,} ({percent_mismatch:.2f}%) aligned bases mismatched",
        bold=False,
    )
