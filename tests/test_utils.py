import unittest

from reseller_billing.adapters.utils.document_utils import is_valid_cpf, normalize_cpf
from reseller_billing.adapters.utils.phone_utils import normalize_phone, only_digits
from reseller_billing.core.application.services.credential_generator import (
    REFERRAL_ALPHABET,
    generate_referral_code,
    generate_temp_password,
    generate_unique_referral_code,
)
from reseller_billing.core.domain.events.exceptions import GenerationExhaustedError


class PhoneNormalizationTests(unittest.TestCase):
    def test_brazilian_formats(self):
        for raw in ("(11) 98765-4321", "11987654321", "+55 11 98765-4321", "5511987654321", "0055 11 98765 4321"):
            with self.subTest(raw=raw):
                self.assertEqual(normalize_phone(raw), "5511987654321")

    def test_landline(self):
        self.assertEqual(normalize_phone("(21) 3333-4444"), "552133334444")

    def test_invalid(self):
        for raw in (None, "", "   ", "123", "abc"):
            with self.subTest(raw=raw):
                self.assertIsNone(normalize_phone(raw))

    def test_only_digits(self):
        self.assertEqual(only_digits("+55 (11) 9-8765"), "551198765")


class CpfTests(unittest.TestCase):
    def test_valid(self):
        self.assertTrue(is_valid_cpf("529.982.247-25"))
        self.assertEqual(normalize_cpf("529.982.247-25"), "52998224725")

    def test_invalid(self):
        for raw in ("529.982.247-26", "111.111.111-11", "123", ""):
            with self.subTest(raw=raw):
                self.assertFalse(is_valid_cpf(raw))


class CredentialGeneratorTests(unittest.IsolatedAsyncioTestCase):
    def test_temp_password_mixes_character_classes(self):
        for _ in range(50):
            password = generate_temp_password(8)
            self.assertEqual(len(password), 8)
            self.assertTrue(any(c.isupper() for c in password))
            self.assertTrue(any(c.islower() for c in password))
            self.assertTrue(any(c.isdigit() for c in password))

    def test_referral_code_alphabet(self):
        code = generate_referral_code(8)
        self.assertEqual(len(code), 8)
        self.assertTrue(set(code) <= set(REFERRAL_ALPHABET))

    async def test_unique_code_retries_until_free(self):
        codes = iter(["TAKEN001", "TAKEN002", "FREE0003"])
        taken = {"TAKEN001", "TAKEN002"}

        async def is_taken(code):
            return code in taken

        code = await generate_unique_referral_code(is_taken, generator=lambda _n: next(codes))
        self.assertEqual(code, "FREE0003")

    async def test_unique_code_gives_up(self):
        async def always_taken(_code):
            return True

        with self.assertRaises(GenerationExhaustedError):
            await generate_unique_referral_code(always_taken, max_attempts=3)
