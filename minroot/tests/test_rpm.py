"""Tests for package name normalization"""

import pytest

from minroot.core.rpm import normalize_name, split_nevr


class TestNormalizeName:

    @pytest.mark.parametrize('identifier, name', [
        ('bash-5.2.26-3.fc40', 'bash'),
        ('glibc-minimal-langpack-2.39-17.fc40', 'glibc-minimal-langpack'),
        ('python3-libs-3.12.4-1.fc40.x86_64', 'python3-libs'),
        ('perl-Time-Local-1.350-5.fc40', 'perl-Time-Local'),
        ('tzdata-2024a-5.fc40', 'tzdata'),
        ('shadow-utils-2:4.15.1-3.fc40', 'shadow-utils'),
        ('texlive-base-svn66984-70.fc40', 'texlive-base'),
        ('openssh-clients-p1.9.6-1.fc40', 'openssh-clients'),
        ('tzdata-java-r2024a-1', 'tzdata-java'),
    ])
    def test_strips_version_and_release(self, identifier, name):
        assert normalize_name(identifier) == name

    @pytest.mark.parametrize('name', [
        'bash',
        'python3-libs',
        'glibc-minimal-langpack',
        'perl-Time-Local',
        'xorg-x11-fonts',
        'python3-pip-wheel',
    ])
    def test_bare_names_unchanged(self, name):
        assert normalize_name(name) == name

    def test_idempotent(self):
        once = normalize_name('ncurses-libs-6.4-12.20240127.fc40')
        assert once == 'ncurses-libs'
        assert normalize_name(once) == once

    def test_malformed_input_does_not_raise(self):
        assert normalize_name('') == ''
        assert normalize_name('-') == '-'
        assert normalize_name('--') == '--'
        assert normalize_name('-1.0-1') == '-1.0-1'


class TestSplitNevr:

    def test_split(self):
        assert split_nevr('bash-5.2.26-3.fc40') == ('bash', '5.2.26', '3.fc40')

    def test_bare_name(self):
        assert split_nevr('bash') == ('bash', '', '')
