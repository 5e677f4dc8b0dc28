import pytest

from linkshield.core.risk_scorer import RiskScorer
from linkshield.schemas import ThreatLevel


class TestScoring:
    def test_clean_domain_is_safe(self, scorer):
        result = scorer.analyze_url("https://example.com")

        assert result.score == 0
        assert result.threat_level == ThreatLevel.SAFE
        assert not result.is_suspicious
        assert result.reasons == []

    def test_brand_phishing_on_risky_tld_is_danger(self, scorer):
        result = scorer.analyze_url("http://bca-login-verify.xyz")

        assert result.details.brand_impersonation_score == 40
        assert result.details.tld_score == 20
        assert result.details.keyword_score == 20
        assert result.score >= 50
        assert result.threat_level == ThreatLevel.DANGER
        assert result.is_suspicious
        assert "Potential impersonation of BCA detected" in result.reasons

    def test_score_is_clamped_sum_of_breakdown(self, scorer):
        result = scorer.analyze_url("http://bca-login-secure-verify.xyz/a/b/c/d/e/login?u=victim@mail.com")
        assert result.score == min(100, result.details.total())

    @pytest.mark.parametrize("url", [
        "https://www.example.com",
        "https://wikipedia.org/wiki/Phishing",
        "https://github.com/explore",
    ])
    def test_ordinary_sites_score_zero(self, scorer, url):
        assert scorer.analyze_url(url).score == 0

    @pytest.mark.parametrize("url", [
        "https://www.bca.co.id/id/Individu",
        "https://klikbca.com",
        "https://mail.google.com/mail/u/0",
        "https://shopee.co.id/flash_sale",
        "https://m.facebook.com/home",
        "https://www.tokopedia.com/cart",
    ])
    def test_official_brand_domains_score_zero(self, scorer, url):
        result = scorer.analyze_url(url)

        assert result.details.brand_impersonation_score == 0
        assert result.score == 0
        assert result.threat_level == ThreatLevel.SAFE


class TestBrandRules:
    def test_low_abuse_context_halves_brand_score(self, scorer):
        assert scorer.analyze_url("https://bca-promo.com").details.brand_impersonation_score == 20

    def test_many_hyphens_keep_full_brand_score(self, scorer):
        result = scorer.analyze_url("https://bca-login-secure-verify.com")
        assert result.details.brand_impersonation_score == 40

    def test_short_keyword_must_be_standalone(self, scorer):
        assert scorer.analyze_url("https://abcadef.com").details.brand_impersonation_score == 0

    def test_short_keyword_hyphen_segment_matches(self, scorer):
        result = scorer.analyze_url("https://bca-promo.xyz")

        assert result.details.brand_impersonation_score > 0
        assert result.score > 0

    def test_digit_substitution_matches_brand(self, scorer):
        result = scorer.analyze_url("https://g00gle-login.com")

        assert result.details.brand_impersonation_score > 0
        assert "Potential impersonation of Google detected" in result.reasons

    def test_cyrillic_homoglyph_matches_brand(self, scorer):
        result = scorer.analyze_url("https://раураl.com")

        assert result.details.brand_impersonation_score > 0
        assert result.details.structure_score == 15
        assert any("non-ASCII" in r for r in result.reasons)

    @pytest.mark.parametrize("url", [
        "https://g00gle.com",
        "https://gogle.com",
        "https://gооgle.com",
        "https://paypa1.com",
        "https://faceb00k.com",
    ])
    def test_lookalike_hosts_match_brand(self, scorer, url):
        assert scorer.analyze_url(url).details.brand_impersonation_score > 0

    def test_typosquat_reason(self, scorer):
        result = scorer.analyze_url("https://tokopedla.com")

        assert result.details.brand_impersonation_score == 20
        assert any("typosquatting" in r and "Tokopedia" in r for r in result.reasons)

    def test_best_brand_only_counts_once(self, scorer):
        result = scorer.analyze_url("https://paypal-netflix-amazon-login.xyz")
        assert result.details.brand_impersonation_score == 40


class TestStructure:
    def test_ip_literal(self, scorer):
        assert scorer.analyze_url("http://192.168.1.1/admin").details.structure_score == 20

    def test_deep_subdomains(self, scorer):
        assert scorer.analyze_url("https://a.b.c.d.example.com").details.structure_score >= 10

    def test_many_hyphens(self, scorer):
        assert scorer.analyze_url("https://my-very-suspicious-domain.com").details.structure_score >= 10

    def test_www_is_not_a_label(self, scorer):
        assert scorer.analyze_url("https://www.example.com").details.structure_score == 0

    def test_www_counts_towards_depth(self, scorer):
        result = scorer.analyze_url("https://www.a.b.example.com")

        assert result.details.structure_score >= 10
        assert "Excessive subdomain depth (5 labels)" in result.reasons

    def test_punycode_domain(self, scorer):
        result = scorer.analyze_url("http://xn--e1awd7f.xn--p1ai")

        assert result.details.structure_score >= 15
        assert "Internationalized (Punycode) domain name" in result.reasons


class TestTopLevelDomain:
    @pytest.mark.parametrize("url", ["https://prize.xyz", "https://hadiah.top", "http://free.tk"])
    def test_risky_tlds(self, scorer, url):
        assert scorer.analyze_url(url).details.tld_score == 20

    @pytest.mark.parametrize("url", ["https://shop.info", "https://shop.net", "https://shop.org"])
    def test_general_purpose_tlds_not_penalised(self, scorer, url):
        assert scorer.analyze_url(url).details.tld_score == 0


class TestDenylistAndBlocking:
    def test_denylisted_domain_is_blocked(self, scorer):
        result = scorer.analyze_url("https://known-scam.xyz/promo")

        assert result.threat_level == ThreatLevel.BLOCKED
        assert result.is_suspicious
        assert result.denylist_match.domain == "known-scam.xyz"
        assert result.reasons[0] == "Domain is on the known scam list (fake_bank)"

    def test_denylisted_parent_blocks_subdomain(self, scorer):
        assert scorer.analyze_url("https://login.known-scam.xyz").threat_level == ThreatLevel.BLOCKED

    def test_denylist_entry_with_www_matches_bare_host(self, scorer):
        assert scorer.analyze_url("lottery-winner.com").threat_level == ThreatLevel.BLOCKED

    def test_invitation_apk_is_blocked(self, scorer):
        result = scorer.analyze_url("http://undangan-pernikahan.xyz/undangan.apk")

        assert result.threat_level == ThreatLevel.BLOCKED
        assert any("Invitation-themed" in r for r in result.reasons)

    def test_plain_apk_download_is_not_blocked(self, scorer):
        result = scorer.analyze_url("http://files.example.xyz/app.apk")

        assert result.threat_level != ThreatLevel.BLOCKED
        assert result.details.path_analysis_score == 10


class TestMalformedInput:
    @pytest.mark.parametrize("url", ["", "not-a-url", "javascript:alert(1)", "http://", "%%%"])
    def test_never_raises(self, scorer, url):
        result = scorer.analyze_url(url)

        assert 0 <= result.score <= 100
        assert result.threat_level in ThreatLevel

    def test_empty_input_is_safe_with_no_reasons(self, scorer):
        result = scorer.analyze_url("")

        assert result.score == 0
        assert result.reasons == []

    def test_unparseable_input_notes_fallback(self, scorer):
        result = scorer.analyze_url("javascript:alert(1)")
        assert result.reasons[0] == "URL could not be parsed; analysed as plain text"

    @pytest.mark.parametrize("url", ["https://known-scam.xyz:99999/", "https://known-scam.xyz:abc/promo"])
    def test_denylisted_host_with_bad_port_is_blocked(self, scorer, url):
        result = scorer.analyze_url(url)

        assert result.threat_level == ThreatLevel.BLOCKED
        assert result.denylist_match.domain == "known-scam.xyz"
        assert result.reasons[0] == "URL could not be parsed; analysed as plain text"

    def test_brand_scam_with_bad_port_is_not_safe(self, scorer):
        result = scorer.analyze_url("https://bca-login-verify.xyz:99999/")

        assert result.details.brand_impersonation_score > 0
        assert result.threat_level != ThreatLevel.SAFE


class TestDeterminism:
    @pytest.mark.parametrize("url", [
        "http://bca-login-verify.xyz",
        "https://раураl.com/login",
        "https://known-scam.xyz",
    ])
    def test_same_input_same_result(self, scorer, url):
        assert scorer.analyze_url(url) == scorer.analyze_url(url)

    def test_explicit_snapshot_is_used(self, scorer, denylist):
        other = RiskScorer()
        result = other.analyze_url("https://known-scam.xyz", snapshot=denylist.current())
        assert result.threat_level == ThreatLevel.BLOCKED


class TestClassification:
    @pytest.mark.parametrize("score,level", [
        (0, ThreatLevel.SAFE),
        (34, ThreatLevel.SAFE),
        (35, ThreatLevel.WARNING),
        (49, ThreatLevel.WARNING),
        (50, ThreatLevel.DANGER),
        (100, ThreatLevel.DANGER),
    ])
    def test_thresholds(self, scorer, score, level):
        assert scorer.classify(score) == level

    def test_penalty_crosses_threshold(self, scorer):
        base = scorer.analyze_url("https://bca-promo.com")
        adjusted = scorer.with_adjustments(base, penalty=15, reasons=["redirected"])

        assert base.threat_level == ThreatLevel.SAFE
        assert adjusted.score == base.score + 15
        assert adjusted.threat_level == ThreatLevel.WARNING
        assert adjusted.is_suspicious
        assert adjusted.reasons[-1] == "redirected"

    def test_floor_raises_score(self, scorer):
        adjusted = scorer.with_adjustments(scorer.analyze_url("https://example.com"), floor=80)

        assert adjusted.score == 80
        assert adjusted.threat_level == ThreatLevel.DANGER

    def test_adjustments_never_exceed_100(self, scorer):
        base = scorer.analyze_url("http://bca-login-secure-verify.xyz/internet-banking/login")
        assert scorer.with_adjustments(base, penalty=50, floor=80).score <= 100

    def test_blocked_stays_blocked(self, scorer):
        base = scorer.analyze_url("https://known-scam.xyz")
        assert scorer.with_adjustments(base, penalty=15).threat_level == ThreatLevel.BLOCKED

    def test_fallback_result(self):
        result = RiskScorer.fallback_result("https://x.test")

        assert result.score == 0
        assert result.threat_level == ThreatLevel.SAFE
