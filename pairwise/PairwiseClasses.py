#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from enum import Enum

CIGAR_KINDS = 'MIDNSHP=X'
QUERY_CONSUMING_KINDS = 'MIS=X'
REFERENCE_CONSUMING_KINDS = 'MD=X'


class AlignmentError(ValueError):
    '''
    Base class for everything that makes a single SAM record unusable.
    The driver catches these, reports them, and moves on to the next record.
    '''

class MalformedCigar(AlignmentError):
    pass

class UnsupportedCigarOp(AlignmentError):
    pass

class MalformedMdTag(AlignmentError):
    '''
    Raised by the MD decoder. Carries the offending character and its position so the
    warning shown to the user points at the right spot. `char` is None when the tag ended early.
    '''
    def __init__(self, message: str, char=None, position=None):
        super().__init__(message)
        self.char = char
        self.position = position

class CigarMdInconsistency(AlignmentError):
    pass

class SequenceTooShort(AlignmentError):
    pass

class MalformedSamRecord(AlignmentError):
    pass

class AlignmentWarning(UserWarning):
    '''Recoverable oddities in a record: bad MD tag, odd mismatch entries, length disagreements.'''


class CigarOperation:
    '''
    One run of a CIGAR string, eg. the `12M` in `3S12M2D40M`.
    '''
    __slots__ = ('length', 'kind')

    def __init__(self, length: int, kind: str):
        self.length = length
        self.kind = kind

    def __str__(self):
        return f'{self.length}{self.kind}'

    def __repr__(self):
        return f'CigarOperation({self.length}, {self.kind!r})'

    def __eq__(self, other):
        if not isinstance(other, CigarOperation):
            return NotImplemented
        return (self.length, self.kind) == (other.length, other.kind)

    def __hash__(self):
        return hash((self.length, self.kind))

    def consumes_query(self):
        return self.kind in QUERY_CONSUMING_KINDS

    def consumes_reference(self):
        return self.kind in REFERENCE_CONSUMING_KINDS


class MdEntry:
    '''
    Base for the three token kinds found in an MD:Z tag.
    Subclasses are compared by value so decoded lists can be checked against literals in tests.
    '''
    __slots__ = ()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash((type(self).__name__, self._key()))

    def __repr__(self):
        return f'{type(self).__name__}({self._key()!r})'

class MatchRun(MdEntry):
    '''`count` bases of the read agree with the reference. A count of 0 separates two adjacent events.'''
    __slots__ = ('count',)

    def __init__(self, count: int):
        self.count = count

    def _key(self):
        return self.count

    def __str__(self):
        return str(self.count)

class Mismatch(MdEntry):
    '''A single reference base that differs from the read.'''
    __slots__ = ('reference_base',)

    def __init__(self, reference_base: str):
        self.reference_base = reference_base

    def _key(self):
        return self.reference_base

    def __str__(self):
        return self.reference_base

class Deletion(MdEntry):
    '''Reference bases missing from the read, written `^ACG` in the tag.'''
    __slots__ = ('reference_bases',)

    def __init__(self, reference_bases: str):
        self.reference_bases = reference_bases

    def _key(self):
        return self.reference_bases

    def __str__(self):
        return f'^{self.reference_bases}'


class HighlightConfig:
    '''
    User choices that change how positions are highlighted.
    `known_mutation` is a (ref, alt) pair such as ('C', 'T'); `quality_cutoff` of None turns
    the low-quality styling off. Introns longer than `intron_threshold` are condensed
    (None keeps the reconstructor's default of 20).
    '''
    def __init__(self, known_mutation=None, mark_char: str = '.', quality_cutoff=None, intron_threshold=None):
        if known_mutation is not None:
            if len(known_mutation) != 2 or any(len(base) != 1 for base in known_mutation):
                raise ValueError(f'known_mutation must be a (ref, alt) pair of single bases, got {known_mutation!r}')
            known_mutation = (known_mutation[0], known_mutation[1])
        if len(mark_char) != 1:
            raise ValueError(f'mark_char must be a single character, got {mark_char!r}')
        self.known_mutation = known_mutation
        self.mark_char = mark_char
        self.quality_cutoff = quality_cutoff
        self.intron_threshold = intron_threshold

    def __str__(self):
        str = f'''
        known_mutation\tmark_char\tquality_cutoff\tintron_threshold
        {self.known_mutation}\t{self.mark_char}\t{self.quality_cutoff}\t{self.intron_threshold}
        '''
        return(str)

    @classmethod
    def from_mutation_string(cls, mutation: str = '', **kwargs):
        '''
        Builds a config from the command-line `REF>ALT` form. An empty string means no known mutation.
        '''
        if not mutation:
            return cls(None, **kwargs)
        if len(mutation) != 3 or mutation[1] != '>':
            raise ValueError(f'Mutation must be written REF>ALT (eg. C>T), got {mutation!r}')
        return cls((mutation[0], mutation[2]), **kwargs)


class Role(Enum):
    '''Semantic styling of one output cell. Formatters in `render` turn these into markup.'''
    PLAIN = 'plain'
    MISMATCH = 'mismatch'
    GAP = 'gap'
    LOW_QUALITY = 'lowQuality'
    MATCH_OF_INTEREST = 'matchOfInterest'
    PADDING = 'padding'
    SKIPPED = 'skipped'


class Segment:
    '''
    A piece of text on one track with a single role. Usually one base, but condensed
    introns are a single multi-character segment.
    '''
    __slots__ = ('text', 'role')

    def __init__(self, text: str, role: Role = Role.PLAIN):
        self.text = text
        self.role = role

    def __eq__(self, other):
        if not isinstance(other, Segment):
            return NotImplemented
        return (self.text, self.role) == (other.text, other.role)

    def __repr__(self):
        return f'Segment({self.text!r}, {self.role})'


class AlignmentResult:
    '''
    The three parallel tracks of a pairwise display plus per-record counts.
    Every track has the same display width.
    '''
    def __init__(self):
        self.reference = []
        self.query = []
        self.marker = []
        self.counts = {
            'matches': 0,
            'mismatches': 0,
            'insertions': 0,
            'deletions': 0,
            'soft_clipped': 0,
            'low_quality': 0,
        }

    def __str__(self):
        return '\n'.join([self.query_track, self.marker_track, self.reference_track])

    def add(self, reference: Segment, query: Segment, marker: Segment):
        self.reference.append(reference)
        self.query.append(query)
        self.marker.append(marker)

    @property
    def reference_track(self):
        return ''.join(seg.text for seg in self.reference)

    @property
    def query_track(self):
        return ''.join(seg.text for seg in self.query)

    @property
    def marker_track(self):
        return ''.join(seg.text for seg in self.marker)

    def query_roles(self):
        '''One role per displayed character of the query track.'''
        return [seg.role for seg in self.query for _ in seg.text]

    def reference_roles(self):
        return [seg.role for seg in self.reference for _ in seg.text]


class SamRecord:
    '''
    The handful of SAM columns needed to draw a pairwise alignment, plus the optional tags.
    '''
    def __init__(self, qname: str, flag: str, rname: str, pos: str, cigar: str, seq: str, qual: str, tags=None):
        self.qname = qname
        self.flag = flag
        self.rname = rname
        self.pos = pos
        self.cigar = cigar
        self.seq = seq
        self.qual = qual
        self.tags = list(tags) if tags else []

    def __str__(self):
        str = f'''
        qname\t{self.qname}
        flag\t{self.flag}
        rname\t{self.rname}
        pos\t{self.pos}
        cigar\t{self.cigar}
        seq\t{self.seq}
        qual\t{self.qual}
        '''
        return(str)

    def get_tag(self, key: str):
        '''
        Returns the value of the first optional field named `key` (TAG:TYPE:VALUE), or '' if absent.
        '''
        for field in self.tags:
            parts = field.split(':', 2)
            if len(parts) == 3 and parts[0] == key:
                return parts[2]
        return ''

    @property
    def md_tag(self):
        for field in self.tags:
            if field.startswith('MD:Z:'):
                return field[5:]
        return ''

    @property
    def query_quality(self):
        # '*' is SAM for "no qualities stored"
        return '' if self.qual == '*' else self.qual

    def info_line(self, tag_keys=('MD',)):
        tag_values = '|'.join(self.get_tag(key) for key in tag_keys)
        return f'{self.qname} {self.flag} {self.rname} {self.pos} {self.cigar} {tag_values}'
