"""Tests for the SPDX-License-Identifier backend."""

import pytest

from scanspine.core.errors import BackendError
from scanspine.framework.backends.spdx import SpdxBackend, expression_ids
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License

INFO = ContentInfo(source="file:///src", path="main.c", size=0)


class TestExpressionIds:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("MIT", ["MIT"]),
            ("Apache-2.0 OR MIT", ["Apache-2.0", "MIT"]),
            ("(MIT AND BSD-3-Clause) or ISC", ["MIT", "BSD-3-Clause", "ISC"]),
            ("GPL-2.0-only WITH Linux-syscall-note", ["GPL-2.0-only"]),
            ("MIT */", ["MIT"]),
            ("MIT -->", ["MIT"]),
            ("", []),
        ],
    )
    def test_ids(self, expr, expected):
        assert expression_ids(expr) == expected


class TestSpdxBackend:
    def test_registry_ids(self, registry):
        data = b"# SPDX-License-Identifier: Apache-2.0 OR MIT\nimport os\n"
        verdict = SpdxBackend(registry=registry).scan_data(data, INFO)
        assert verdict.licenses == (License(spdx="Apache-2.0"), License(spdx="MIT"))
        assert verdict.backend == "spdx"

    def test_less_common_registry_ids(self, registry):
        data = b"# SPDX-License-Identifier: BSD-3-Clause-Clear\n# SPDX-License-Identifier: LGPL-2.0-or-later\n"
        verdict = SpdxBackend(registry=registry).scan_data(data, INFO)
        assert verdict.licenses == (License(spdx="BSD-3-Clause-Clear"), License(spdx="LGPL-2.0-or-later"))

    def test_default_registry(self):
        verdict = SpdxBackend().scan_data(b"// SPDX-License-Identifier: BSD-3-Clause-Clear\n", INFO)
        assert verdict.licenses == (License(spdx="BSD-3-Clause-Clear"),)

    def test_several_tags_deduplicated(self, registry):
        data = b"/* SPDX-License-Identifier: MIT */\n...\n// SPDX-License-Identifier: MIT\n"
        verdict = SpdxBackend(registry=registry).scan_data(data, INFO)
        assert verdict.licenses == (License(spdx="MIT"),)

    def test_license_ref(self, registry):
        data = b"// SPDX-License-Identifier: LicenseRef-Acme-Internal\n"
        verdict = SpdxBackend(registry=registry).scan_data(data, INFO)
        assert verdict.licenses == (License(origin="spdx", custom="LicenseRef-Acme-Internal"),)

    def test_no_tag(self, registry):
        assert SpdxBackend(registry=registry).scan_data(b"print('hi')\n", INFO).empty

    def test_binary_skipped(self, registry):
        data = b"\x7fELF\x00\x00SPDX-License-Identifier: MIT"
        assert SpdxBackend(registry=registry).scan_data(data, INFO).empty

    def test_unknown_id_keeps_partial(self, registry):
        data = b"# SPDX-License-Identifier: MIT OR Foo-1.0\n"
        with pytest.raises(BackendError) as exc_info:
            SpdxBackend(registry=registry).scan_data(data, INFO)

        error = exc_info.value
        assert "Foo-1.0" in error.message
        assert error.partial.licenses == (License(spdx="MIT"),)
        assert error.context.metadata["unknown"] == ["Foo-1.0"]

    def test_identifiers_are_case_sensitive(self, registry):
        with pytest.raises(BackendError):
            SpdxBackend(registry=registry).scan_data(b"SPDX-License-Identifier: mit\n", INFO)
