#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from warnings import warn

from pairwise.PairwiseClasses import (
    AlignmentResult, AlignmentWarning, CigarMdInconsistency, Deletion, HighlightConfig,
    MalformedMdTag, MatchRun, Role, Segment, SequenceTooShort, UnsupportedCigarOp,
)
from pairwise.cigar import parse_cigar, query_length, reference_length
from pairwise.mdtag import parse_md_tag, md_reference_length

MIN_INTRON_COMPRESS_LENGTH = 20 # N runs longer than this are condensed
CONDENSED_EDGE_LENGTH = 5 # placeholder characters on each side of a condensed intron

UNKNOWN_BASE = 'N'
GAP = '-'
SKIPPED_QUERY = '.'
CLIPPED_REFERENCE = '.'
PADDING = '*'


def warn_for_read(qname: str, message: str):
    '''Raises an AlignmentWarning prefixed with the read name, so repeats stay distinguishable.'''
    if qname:
        message = f'read {qname}: {message}'
    warn(message, AlignmentWarning)


class MdCursor:
    '''
    Walks the decoded MD entries alongside the CIGAR operations.
    CIGAR runs and MD entries do not line up one-to-one, so the cursor keeps both the entry
    index and the offset (`sub_pos`) inside the current MatchRun or Deletion.
    `available` drops to False once the entries run out; from then on the reference is unknown.
    '''
    def __init__(self, entries: list, md_tag: str = '', qname: str = ''):
        self.entries = entries
        self.md_tag = md_tag
        self.qname = qname
        self.index = 0
        self.sub_pos = 0
        self.available = bool(entries)

    def __str__(self):
        str = f'''
        md_tag\tindex\tsub_pos\tavailable
        {self.md_tag}\t{self.index}\t{self.sub_pos}\t{self.available}
        '''
        return(str)

    def _skip_placeholders(self):
        while self.index < len(self.entries):
            entry = self.entries[self.index]
            if not (isinstance(entry, MatchRun) and entry.count == 0):
                break
            self.index += 1
            self.sub_pos = 0

    def _current(self):
        '''Returns the entry under the cursor, or None (and marks the MD as spent) when exhausted.'''
        if not self.available:
            return None
        self._skip_placeholders()
        if self.index >= len(self.entries):
            self.available = False
            return None
        return self.entries[self.index]

    def _advance(self):
        self.index += 1
        self.sub_pos = 0

    def next_aligned(self, read_base: str):
        '''
        Consumes one aligned (M/=/X) position. Returns (reference_base, is_mismatch),
        or None when there is no MD left to consult.
        '''
        entry = self._current()
        if entry is None:
            return None
        if isinstance(entry, Deletion):
            raise CigarMdInconsistency(
                f"MD tag indicates deletion (^{entry.reference_bases}) during CIGAR M/=/X at MD index {self.index} (MD: {self.md_tag})"
            )
        if isinstance(entry, MatchRun):
            self.sub_pos += 1
            if self.sub_pos == entry.count:
                self._advance()
            return read_base, False
        self._advance()
        if len(entry.reference_base) != 1:
            warn_for_read(self.qname, f"MD mismatch entry '{entry.reference_base}' is not a single base; showing it as '{UNKNOWN_BASE}' (MD: {self.md_tag})")
            return UNKNOWN_BASE, True
        return entry.reference_base, True

    def take_deleted(self, wanted: int):
        '''
        Consumes up to `wanted` deleted reference bases, crossing into the next Deletion entry if
        needed. Returns fewer bases than asked for only when the MD runs out.
        '''
        taken = ''
        while len(taken) < wanted:
            entry = self._current()
            if entry is None:
                break
            if not isinstance(entry, Deletion):
                raise CigarMdInconsistency(
                    f"MD tag indicates match/mismatch ({entry}) during CIGAR D op at MD index {self.index} (MD: {self.md_tag})"
                )
            bases = entry.reference_bases
            n_take = min(wanted - len(taken), len(bases) - self.sub_pos)
            taken += bases[self.sub_pos:self.sub_pos + n_take]
            self.sub_pos += n_take
            if self.sub_pos == len(bases):
                self._advance()
        return taken


class AlignmentReconstructor:
    '''
    Rebuilds the reference, query and marker tracks for a single SAM record from its SEQ,
    QUAL, CIGAR operations and MD tag.
    Holds no state beyond the record, so separate records can be converted in parallel.
    '''
    def __init__(self, seq: str, qual: str, cigar_ops: list, md_tag: str = '', highlight: HighlightConfig = None, qname: str = ''):
        self.seq = '' if seq == '*' else seq
        self.qual = '' if qual == '*' else (qual or '')
        self.cigar_ops = cigar_ops
        self.md_tag = md_tag or ''
        self.highlight = highlight if highlight is not None else HighlightConfig()
        self.qname = qname
        self.seq_pos = 0
        self.md = MdCursor(self._decode_md(), self.md_tag, qname)
        self.result = AlignmentResult()

    def __str__(self):
        str = f'''
        seq_len\tcigar\tmd_tag\tseq_pos
        {len(self.seq)}\t{''.join(f'{op}' for op in self.cigar_ops)}\t{self.md_tag}\t{self.seq_pos}
        '''
        return(str)

    def _decode_md(self):
        try:
            return parse_md_tag(self.md_tag)
        except MalformedMdTag as e:
            warn_for_read(self.qname, f'{e}; treating the reference as unknown for this record')
            return []

    def reconstruct(self):
        handlers = {
            'M': self._aligned,
            '=': self._aligned,
            'X': self._aligned,
            'I': self._insertion,
            'D': self._deletion,
            'N': self._skipped_region,
            'S': self._soft_clip,
            'H': self._hard_clip,
            'P': self._padding,
        }
        for op in self.cigar_ops:
            handler = handlers.get(op.kind)
            if handler is None:
                raise UnsupportedCigarOp(f'unsupported CIGAR operation: {op.kind}')
            handler(op)
        self.check_query_length()
        self.check_reference_length()
        return self.result

    def check_query_length(self):
        '''
        Warns when the CIGAR and the stored sequence/qualities disagree on the read length.
        Trailing disagreements are common in real data, so this never aborts the record.
        Unmapped records (no CIGAR operations) are not checked against SEQ.
        '''
        consistent = True
        expected = query_length(self.cigar_ops)
        if self.cigar_ops and self.seq and expected != len(self.seq):
            warn_for_read(self.qname, f'CIGAR consumes {expected} query bases but the sequence has {len(self.seq)}')
            consistent = False
        if self.qual and len(self.qual) != len(self.seq):
            warn_for_read(self.qname, f'quality string length {len(self.qual)} does not match sequence length {len(self.seq)}')
            consistent = False
        return consistent

    def check_reference_length(self):
        '''Warns when a non-empty MD tag describes a different number of reference bases than the CIGAR.'''
        if not self.md.entries:
            return True
        expected = reference_length(self.cigar_ops)
        described = md_reference_length(self.md.entries)
        if expected != described:
            warn_for_read(self.qname, f'CIGAR covers {expected} reference bases but the MD tag describes {described} (MD: {self.md_tag})')
            return False
        return True

    def _read_base(self, kind: str):
        if self.seq_pos >= len(self.seq):
            raise SequenceTooShort(f'CIGAR {kind} asks for base {self.seq_pos + 1} but sequence length is {len(self.seq)}')
        return self.seq[self.seq_pos]

    def _is_low_quality(self):
        cutoff = self.highlight.quality_cutoff
        if cutoff is None or self.seq_pos >= len(self.qual):
            return False
        return (ord(self.qual[self.seq_pos]) - 33) < cutoff

    def _query_role(self, role: Role):
        if self._is_low_quality():
            self.result.counts['low_quality'] += 1
            return Role.LOW_QUALITY
        return role

    def _reference_base(self, read_base: str, kind: str):
        looked_up = self.md.next_aligned(read_base)
        if looked_up is not None:
            return looked_up
        if kind == '=':
            return read_base, False
        return UNKNOWN_BASE, True

    def _aligned(self, op):
        known = self.highlight.known_mutation
        for _ in range(op.length):
            read_base = self._read_base(op.kind)
            ref_base, is_mismatch = self._reference_base(read_base, op.kind)
            at_known_ref = known is not None and ref_base.upper() == known[0].upper()

            marker = '|'
            role = Role.PLAIN
            if is_mismatch:
                marker = ' '
                if at_known_ref and read_base.upper() == known[1].upper():
                    marker = self.highlight.mark_char
                else:
                    role = Role.MISMATCH
                self.result.counts['mismatches'] += 1
            else:
                if at_known_ref:
                    role = Role.MATCH_OF_INTEREST
                self.result.counts['matches'] += 1

            self.result.add(Segment(ref_base, role), Segment(read_base, self._query_role(role)), Segment(marker))
            self.seq_pos += 1

    def _insertion(self, op):
        for _ in range(op.length):
            read_base = self._read_base(op.kind)
            self.result.add(Segment(GAP, Role.GAP), Segment(read_base, self._query_role(Role.MISMATCH)), Segment(' '))
            self.result.counts['insertions'] += 1
            self.seq_pos += 1

    def _deletion(self, op):
        deleted = self.md.take_deleted(op.length) if self.md.available else ''
        deleted += UNKNOWN_BASE * (op.length - len(deleted))
        for ref_base in deleted:
            self.result.add(Segment(ref_base, Role.MISMATCH), Segment(GAP, Role.GAP), Segment(' '))
        self.result.counts['deletions'] += op.length

    def _skipped_region(self, op):
        threshold = self.highlight.intron_threshold
        if threshold is None:
            threshold = MIN_INTRON_COMPRESS_LENGTH
        if op.length > threshold:
            middle = f'..{op.length}nt..'
            ref_text = UNKNOWN_BASE * CONDENSED_EDGE_LENGTH + middle + UNKNOWN_BASE * CONDENSED_EDGE_LENGTH
            query_text = SKIPPED_QUERY * CONDENSED_EDGE_LENGTH + middle + SKIPPED_QUERY * CONDENSED_EDGE_LENGTH
            self.result.add(Segment(ref_text, Role.SKIPPED), Segment(query_text, Role.SKIPPED), Segment(' ' * len(ref_text)))
            return
        for _ in range(op.length):
            self.result.add(Segment(UNKNOWN_BASE, Role.SKIPPED), Segment(SKIPPED_QUERY, Role.SKIPPED), Segment(' '))

    def _soft_clip(self, op):
        for _ in range(op.length):
            read_base = self._read_base(op.kind)
            self.result.add(Segment(CLIPPED_REFERENCE, Role.SKIPPED), Segment(read_base, self._query_role(Role.MISMATCH)), Segment(' '))
            self.result.counts['soft_clipped'] += 1
            self.seq_pos += 1

    def _hard_clip(self, op):
        pass

    def _padding(self, op):
        for _ in range(op.length):
            self.result.add(Segment(PADDING, Role.PADDING), Segment(PADDING, Role.PADDING), Segment(' '))


def reconstruct(seq: str, qual: str, cigar, md_tag: str = '', highlight: HighlightConfig = None, qname: str = ''):
    '''
    Converts one record into an AlignmentResult.
    `cigar` may be a CIGAR string or an already decoded list of CigarOperation objects.
    `qname` only labels any warnings raised for the record.
    '''
    cigar_ops = parse_cigar(cigar) if isinstance(cigar, str) else list(cigar)
    return AlignmentReconstructor(seq, qual, cigar_ops, md_tag, highlight, qname).reconstruct()
