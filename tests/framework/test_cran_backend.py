"""
Tests for the CRAN backend.

Covers:
- License expression parser conformance cases
- DCF field extraction with continuation lines
- Backend verdicts, and partial verdicts on malformed fields
"""

import pytest

from scanspine.core.errors import BackendError, LicenseFormatError
from scanspine.framework.backends.cran import CranBackend, parse_license_field, read_dcf_field
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License


def customs(licenses):
    return [license.custom for license in licenses]


class TestParseLicenseField:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("++--###", ["++--###"]),
            ("file LICENSE", []),
            ("file any", []),
            ("MIT + file LICENSE", ["MIT"]),
            ("MIT + file LICENSE | file LICENSE", ["MIT"]),
            ("Artistic-2.0 | AGPL-3 + file LICENSE", ["Artistic-2.0", "AGPL-3"]),
            ("GPL-2 | \n file LICENSE", ["GPL-2"]),
            ("MIT + file LICENSE | file LICENSE | AGPL-3 + file anything", ["MIT", "AGPL-3"]),
            ("Artistic-2.0 | AGPL-3 + file any | MIT + file LICENSE", ["Artistic-2.0", "AGPL-3", "MIT"]),
            ("Artistic-2.0 | \n AGPL-3 + file  any | \n MIT + file LICENSE", ["Artistic-2.0", "AGPL-3", "MIT"]),
            ("Artistic-2.0 | \n AGPL-3 \n + file any | -+-+##& | \n MIT + file LICENSE",
             ["Artistic-2.0", "AGPL-3", "-+-+##&", "MIT"]),
            ("GPL (>= 2)", ["GPL (>= 2)"]),
            ("GPL   (>=\n 2) | MIT", ["GPL (>= 2)", "MIT"]),
            ("MIT | MIT + file LICENSE", ["MIT"]),
        ],
    )
    def test_valid(self, text, expected):
        assert customs(parse_license_field(text)) == expected

    def test_claims_are_custom_only(self):
        (claim,) = parse_license_field("MIT + file LICENSE")
        assert claim == License(custom="MIT")
        assert claim.origin == ""
        assert claim.spdx == ""

    @pytest.mark.parametrize("text", ["", "   ", "\n", "||||||"])
    def test_error_without_claims(self, text):
        with pytest.raises(LicenseFormatError) as exc_info:
            parse_license_field(text)
        assert exc_info.value.licenses == []

    def test_error_with_partial_claims(self):
        with pytest.raises(LicenseFormatError) as exc_info:
            parse_license_field("Artistic-2.0 | | MIT +file LICENSE")
        assert customs(exc_info.value.licenses) == ["Artistic-2.0", "MIT"]

    def test_trailing_separator_is_an_error(self):
        with pytest.raises(LicenseFormatError) as exc_info:
            parse_license_field("MIT |")
        assert customs(exc_info.value.licenses) == ["MIT"]


class TestReadDcfField:
    def test_simple(self):
        text = "Package: foo\nVersion: 1.0\nLicense: MIT + file LICENSE\n"
        assert read_dcf_field(text, "License") == "MIT + file LICENSE"

    def test_continuation_lines(self):
        text = "Package: foo\nLicense: Artistic-2.0 |\n    AGPL-3 + file LICENSE\nImports: x\n"
        assert read_dcf_field(text, "License") == "Artistic-2.0 |\nAGPL-3 + file LICENSE"

    def test_missing(self):
        assert read_dcf_field("Package: foo\n", "License") is None

    def test_field_name_is_exact(self):
        assert read_dcf_field("License_is_FOSS: yes\nLicense: MIT\n", "License") == "MIT"

    def test_first_paragraph_only(self):
        assert read_dcf_field("Package: foo\n\nLicense: MIT\n", "License") is None


class TestCranBackend:
    def info(self, path="pkg/DESCRIPTION"):
        return ContentInfo(source="file:///src", path=path, size=0)

    def test_description_file(self, registry):
        backend = CranBackend(registry=registry)
        data = b"Package: foo\nLicense: Artistic-2.0 | AGPL-3 + file LICENSE\n"
        verdict = backend.scan_data(data, self.info())
        assert verdict.backend == "cran"
        assert customs(verdict.licenses) == ["Artistic-2.0", "AGPL-3"]

    def test_other_files_ignored(self, registry):
        verdict = CranBackend(registry=registry).scan_data(b"License: MIT", self.info("pkg/README"))
        assert verdict.empty

    def test_no_license_field(self, registry):
        verdict = CranBackend(registry=registry).scan_data(b"Package: foo\n", self.info())
        assert verdict.empty

    def test_malformed_field_has_partial_verdict(self, registry):
        backend = CranBackend(registry=registry)
        with pytest.raises(BackendError) as exc_info:
            backend.scan_data(b"License: Artistic-2.0 | | MIT +file LICENSE\n", self.info())

        error = exc_info.value
        assert isinstance(error.cause, LicenseFormatError)
        assert error.context.backend == "cran"
        assert customs(error.partial.licenses) == ["Artistic-2.0", "MIT"]

    @pytest.mark.asyncio
    async def test_async_scan(self, registry):
        verdict = await CranBackend(registry=registry).scan(b"License: MIT\n", self.info())
        assert customs(verdict.licenses) == ["MIT"]

    def test_identity(self):
        assert CranBackend().identity == "cran@1"

    def test_fingerprint_info_names_description_only(self):
        backend = CranBackend()
        assert backend.fingerprint_info(self.info()) == "DESCRIPTION"
        assert backend.fingerprint_info(self.info("pkg/README")) == ""
