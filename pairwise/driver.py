#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from itertools import islice, product
import multiprocessing as multi
import sys

from tqdm import tqdm

from pairwise import utils
from pairwise.PairwiseClasses import AlignmentError
from pairwise.render import PlainFormatter
from pairwise.reconstruct import reconstruct

CHUNK_SIZE = 10000 # records handed to the pool per tranche

STATUS_CONVERTED = 'converted'
STATUS_SKIPPED = 'skipped' # headers, blank lines and strand-filtered reads
STATUS_FAILED = 'failed'


class ConversionSettings:
    '''
    Everything a worker needs to turn a SAM line into display text. Picklable, so it can be
    shipped to pool workers alongside each line.
    '''
    def __init__(self, highlight=None, formatter=None, tag_keys=('MD',), forward: bool=False, reverse: bool=False):
        if forward and reverse:
            raise ValueError("Cannot filter for forward and reverse reads at the same time.")
        self.highlight = highlight
        self.formatter = formatter if formatter is not None else PlainFormatter()
        self.tag_keys = tuple(tag_keys) if tag_keys else ('MD',)
        self.forward = forward
        self.reverse = reverse

    def __str__(self):
        str = f'''
        highlight\tformatter\ttag_keys\tforward\treverse
        {self.highlight}\t{self.formatter.name}\t{self.tag_keys}\t{self.forward}\t{self.reverse}
        '''
        return(str)


class RunSummary:
    '''Counts collected while streaming a SAM file.'''
    def __init__(self):
        self.summary_rows = []
        self.num_failed = 0
        self.num_filtered = 0
        self.interrupted = False

    def __str__(self):
        str = f'''
        converted\tfailed\tfiltered\tinterrupted
        {len(self.summary_rows)}\t{self.num_failed}\t{self.num_filtered}\t{self.interrupted}
        '''
        return(str)


def convert_line(input_lst):
    '''
    Converts one SAM line. Takes a (line, ConversionSettings) pair so it can be mapped over a pool.
    Returns (status, qname, text, counts); for failures `text` carries the error message.
    '''
    line = input_lst[0]
    settings = input_lst[1]

    try:
        record = utils.parse_sam_line(line)
        if record is None:
            return (STATUS_SKIPPED, None, None, None)
        if not utils.passes_strand_filter(record.flag, settings.forward, settings.reverse):
            return (STATUS_SKIPPED, record.qname, None, None)
        result = reconstruct(record.seq, record.query_quality, record.cigar, record.md_tag, settings.highlight, record.qname)
    except AlignmentError as e:
        qname = line.split(maxsplit=1)[0] if line.strip() else ''
        return (STATUS_FAILED, qname, f'Error processing read {qname}: {e}', None)

    text = settings.formatter.format_record(record.info_line(settings.tag_keys), result)
    return (STATUS_CONVERTED, record.qname, text, dict(result.counts))

def _collect(converted, out, run_summary: RunSummary):
    status, qname, text, counts = converted
    if status == STATUS_CONVERTED:
        out.write(text)
        run_summary.summary_rows.append((qname, counts))
    elif status == STATUS_FAILED:
        utils.print_record_error(text)
        run_summary.num_failed += 1
    elif qname is not None:
        run_summary.num_filtered += 1

def process_sam_stream(handle, settings: ConversionSettings, out=None, threads: int = 1, chunk_size: int = CHUNK_SIZE, progress: bool = False):
    '''
    Streams SAM lines from `handle`, writes four display lines per record to `out`
    and returns a RunSummary. Bad records are reported and skipped.
    With more than one thread, lines are converted in tranches on a multiprocessing pool;
    output order always follows input order.
    '''
    out = out if out is not None else sys.stdout
    run_summary = RunSummary()
    out.write(settings.formatter.header())
    try:
        if threads > 1:
            _process_pooled(handle, settings, out, threads, chunk_size, progress, run_summary)
        else:
            for line in tqdm(handle, disable=not progress, unit='line'):
                _collect(convert_line((line, settings)), out, run_summary)
    except KeyboardInterrupt:
        run_summary.interrupted = True
        utils.print_interrupt_notice()
    out.write(settings.formatter.footer())
    out.flush()
    return run_summary

def _process_pooled(handle, settings, out, threads, chunk_size, progress, run_summary):
    pool = multi.Pool(processes = threads)
    try:
        with tqdm(disable=not progress, unit='line') as pbar:
            while True:
                tranche = list(islice(handle, chunk_size))
                if not tranche:
                    break
                input_lst = list(product(tranche, [settings]))
                for converted in pool.imap(convert_line, input_lst, chunksize=max(1, chunk_size // (threads * 4))):
                    _collect(converted, out, run_summary)
                pbar.update(len(tranche))
    except BaseException:
        pool.terminate()
        raise
    else:
        pool.close()
    finally:
        pool.join()
